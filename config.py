#!/usr/bin/env python3
"""
Configuration Module for FGFR1 ITD Detection
VarDict-based calling followed by breakpoint exon filtering
"""

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

__version__ = "1.0.0"

CALLER_POLICIES = ("fail-fast", "best-effort")


@dataclass
class FGFR1Config:
    """Configuration for FGFR1 ITD detection"""

    # Required fields
    reference_genome: str
    bam_file: str
    output_vcf: str
    sample_name: str

    # Annotation files
    genome_version: str = "hg38"
    bed_dir: str = "bedfiles"
    gene_bed: Optional[str] = None
    breakpoint_bed: Optional[str] = None
    five_prime_label: str = "exon-9-10"
    three_prime_label: str = "exon-18"

    # VarDict parameters
    min_vaf: float = 0.01
    threads: int = 4
    min_sv_alt_length: int = 7000   # VarDict -L
    extension_length: int = 6000    # VarDict -x

    # ITD filter
    min_itd_alt_length: int = 4000

    # External tools
    vardict_path: str = "~/biotools/vardict"
    teststrandbias_path: str = "~/biotools/vardict_app/bin/teststrandbias.R"
    var2vcf_path: str = "~/biotools/vardict_app/bin/var2vcf_valid.pl"
    caller_failure_policy: str = "fail-fast"

    # Output options
    summary_json: Optional[str] = None
    debug: bool = False  # Also keeps the intermediate VarDict VCF

    def __post_init__(self):
        """Resolve default annotation paths and validate parameters"""
        annotation_dir = Path(self.bed_dir) / self.genome_version
        if self.gene_bed is None:
            self.gene_bed = str(annotation_dir / "FGFR1_gene.bed")
        if self.breakpoint_bed is None:
            self.breakpoint_bed = str(annotation_dir / "FGFR1_ITD_breakpoint_exons.bed")

        if not 0 < self.min_vaf <= 1:
            raise ValueError(f"min_vaf must be between 0 and 1, got {self.min_vaf}")
        if self.threads < 1:
            raise ValueError(f"threads must be at least 1, got {self.threads}")
        for name in ('min_sv_alt_length', 'extension_length', 'min_itd_alt_length'):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.caller_failure_policy not in CALLER_POLICIES:
            raise ValueError(f"caller_failure_policy must be one of {CALLER_POLICIES}, "
                             f"got {self.caller_failure_policy!r}")

    @property
    def abort_on_caller_failure(self) -> bool:
        return self.caller_failure_policy == "fail-fast"

    @property
    def bam_index_candidates(self) -> List[str]:
        """Index locations accepted for the input BAM (sample.bai, sample.bam.bai)"""
        bam = Path(self.bam_file)
        return [str(bam.with_suffix(".bai")), f"{self.bam_file}.bai"]


def create_argument_parser():
    """Create command line argument parser for FGFR1 ITD detection"""
    parser = argparse.ArgumentParser(
        description="FGFR1 ITD detection using VarDict and breakpoint exon filtering",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -r hg38.fa -b sample.bam -o sample_FGFR1_ITD.vcf -n Sample
  %(prog)s -r hg19.fa -b sample.bam -o out.vcf -n Sample --genome-version hg19 --min-vaf 0.05
  %(prog)s -r hg38.fa -b sample.bam -o out.vcf -n Sample --best-effort --debug
        """
    )

    parser.add_argument('--version', action='version',
                        version=f"FGFR1-ITD-seeker v{__version__}")

    # Required arguments
    parser.add_argument('-r', '--ref', required=True,
                        help='Reference genome used to generate the BAM file, indexed for the aligner used')
    parser.add_argument('-b', '--bam', required=True,
                        help='Sorted, deduplicated, indexed and realigned BAM file')
    parser.add_argument('-o', '--output-vcf', required=True,
                        help='Output VCF file for FGFR1 ITD variant calls')
    parser.add_argument('-n', '--name', required=True,
                        help='Sample name for file and VCF header annotations')

    # Annotation arguments
    parser.add_argument('-g', '--genome-version', choices=['hg19', 'hg38'], default='hg38',
                        help='Human genome version for loading exon coordinates (default: hg38)')
    parser.add_argument('--bed-dir', default='bedfiles',
                        help='Directory holding <genome-version>/FGFR1_*.bed files (default: bedfiles)')
    parser.add_argument('--gene-bed',
                        help='FGFR1 gene BED file (overrides --bed-dir)')
    parser.add_argument('--breakpoint-bed',
                        help='FGFR1 ITD breakpoint exon BED file (overrides --bed-dir)')

    # VarDict parameters
    parser.add_argument('--min-vaf', type=float, default=0.01,
                        help='Minimum variant allele frequency to report a variant (default: 0.01)')
    parser.add_argument('--threads', type=int, default=4,
                        help='Number of threads (default: 4)')
    parser.add_argument('--min-sv-alt-length', type=int, default=7000,
                        help='VarDict structural variant length threshold, -L (default: 7000)')
    parser.add_argument('--extension-length', type=int, default=6000,
                        help='VarDict nucleotide extension length, -x (default: 6000)')

    # Filter parameters
    parser.add_argument('--min-itd-alt-length', type=int, default=4000,
                        help='Minimum ALT allele length for an ITD call (default: 4000)')

    # External tools
    parser.add_argument('--vardict', default='~/biotools/vardict',
                        help='VarDict executable (default: ~/biotools/vardict)')
    parser.add_argument('--teststrandbias', default='~/biotools/vardict_app/bin/teststrandbias.R',
                        help='VarDict teststrandbias.R script')
    parser.add_argument('--var2vcf', default='~/biotools/vardict_app/bin/var2vcf_valid.pl',
                        help='VarDict var2vcf_valid.pl script')
    parser.add_argument('--best-effort', action='store_true',
                        help='Filter whatever VarDict produced even if it exits with an error')

    # Output options
    parser.add_argument('--summary-json',
                        help='Write run counters to this JSON file')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging and keep intermediate files')

    return parser


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments and create config"""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        config = FGFR1Config(
            reference_genome=args.ref,
            bam_file=args.bam,
            output_vcf=args.output_vcf,
            sample_name=args.name,
            genome_version=args.genome_version,
            bed_dir=args.bed_dir,
            gene_bed=args.gene_bed,
            breakpoint_bed=args.breakpoint_bed,
            min_vaf=args.min_vaf,
            threads=args.threads,
            min_sv_alt_length=args.min_sv_alt_length,
            extension_length=args.extension_length,
            min_itd_alt_length=args.min_itd_alt_length,
            vardict_path=args.vardict,
            teststrandbias_path=args.teststrandbias,
            var2vcf_path=args.var2vcf,
            caller_failure_policy="best-effort" if args.best_effort else "fail-fast",
            summary_json=args.summary_json,
            debug=args.debug
        )
    except ValueError as e:
        parser.error(str(e))

    return config
