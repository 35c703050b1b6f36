#!/usr/bin/env python3
"""
FGFR1 ITD Detection Main Module
VarDict variant calling followed by breakpoint exon ITD filtering
"""

import sys
import os
import json
import logging
import shutil
import tempfile
from pathlib import Path
from datetime import datetime
from typing import List, Optional

import pysam

from config import parse_arguments, FGFR1Config, __version__
from exon_coordinates import load_exon_coordinates
from itd_vcf_filter import FilterResult, filter_vcf_for_itd
from vardict_runner import CallerResult, run_vardict


def setup_logging(debug: bool = False):
    """Configure logging"""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    return logging.getLogger(__name__)


def validate_file_exists(file_path: str, file_type: str):
    """Raise FileNotFoundError naming the kind of input that is missing"""
    if not Path(file_path).exists():
        raise FileNotFoundError(f"{file_type} does not exist: {file_path}")


def read_bed_contig(bed_file: str) -> Optional[str]:
    """Return the chromosome of the first record in a BED file"""
    with open(bed_file, 'r', encoding='utf-8', errors='surrogateescape') as f:
        for line in f:
            if line.startswith(("#", "track", "browser")) or not line.strip():
                continue
            return line.split("\t")[0].strip()
    return None


class FGFR1ITDDetector:

    def __init__(self, config: FGFR1Config):
        self.config = config
        self.logger = setup_logging(config.debug)

        # Track files for cleanup (only if not in debug mode)
        self.temp_dirs: List[str] = []
        self.caller_result: Optional[CallerResult] = None

    def run(self) -> FilterResult:
        """Run the complete ITD detection pipeline"""
        self.logger.info("=" * 60)
        self.logger.info("FGFR1 ITD Detection - VarDict Pipeline")
        self.logger.info("=" * 60)
        self.logger.info(f"Sample: {self.config.sample_name}")
        self.logger.info(f"Genome version: {self.config.genome_version}")
        self.logger.info(f"Input BAM: {self.config.bam_file}")
        self.logger.info(f"Output VCF: {self.config.output_vcf}")
        self.logger.info(f"Min VAF: {self.config.min_vaf}")
        self.logger.info(f"Min ITD ALT length: {self.config.min_itd_alt_length}bp")

        try:
            # Step 1: Preflight checks
            self.logger.info("[Step 1/4] Performing preflight checks...")
            self.preflight_checks()

            # Step 2: Load breakpoint exon coordinates
            self.logger.info("[Step 2/4] Loading FGFR1 breakpoint exon coordinates...")
            coordinates = load_exon_coordinates(
                self.config.breakpoint_bed,
                self.config.five_prime_label,
                self.config.three_prime_label
            )
            self.logger.info(f"{coordinates.five_prime_label}: {coordinates.five_prime}, "
                             f"{coordinates.three_prime_label}: {coordinates.three_prime}")

            # Step 3: Run VarDict
            self.logger.info("[Step 3/4] Running VarDict...")
            work_dir = tempfile.mkdtemp(prefix="fgfr1_vardict_")
            self.temp_dirs.append(work_dir)
            raw_vcf = os.path.join(work_dir, f"{self.config.sample_name}_vardict_raw.vcf")
            self.caller_result = run_vardict(self.config, raw_vcf)

            # Step 4: Filter for ITDs
            self.logger.info("[Step 4/4] Filtering VCF for FGFR1 ITD variants...")
            result = filter_vcf_for_itd(raw_vcf, self.config.output_vcf, coordinates,
                                        min_alt_length=self.config.min_itd_alt_length)
            self.logger.info(f"Filtered VCF written to {self.config.output_vcf}")

            if self.config.summary_json:
                self._write_summary(result)

            self.logger.info("=" * 60)
            self.logger.info("FGFR1 ITD Detection Complete!")
            self.logger.info("=" * 60)
            return result

        except Exception as e:
            self.logger.error(f"Pipeline failed: {e}")
            if self.config.debug:
                import traceback
                self.logger.error(traceback.format_exc())
            raise

        finally:
            self._cleanup()

    def preflight_checks(self):
        """Validate that all inputs exist before VarDict is started"""
        validate_file_exists(self.config.reference_genome, "reference genome")
        self.logger.info("Reference genome confirmed")

        validate_file_exists(self.config.bam_file, "input BAM file")
        self.logger.info("Input BAM file confirmed")

        if not any(Path(p).exists() for p in self.config.bam_index_candidates):
            raise FileNotFoundError(
                f"BAM index file does not exist: {self.config.bam_index_candidates[0]}")
        self.logger.info("BAM index file confirmed")

        validate_file_exists(self.config.gene_bed, "FGFR1 gene BED file")
        self.logger.info("FGFR1 gene BED file confirmed")

        validate_file_exists(self.config.breakpoint_bed, "exon coordinates BED file")
        self.logger.info("FGFR1 breakpoint exon BED file confirmed")

        self._check_bam_contig()
        self.logger.info("Preflight checks passed")

    def _check_bam_contig(self):
        """Check that the BAM uses the same chromosome naming as the gene BED"""
        contig = read_bed_contig(self.config.gene_bed)
        if contig is None:
            raise ValueError(f"FGFR1 gene BED file has no records: {self.config.gene_bed}")

        with pysam.AlignmentFile(self.config.bam_file, "rb") as bam:
            references = bam.references

        if contig in references:
            return

        alternative = contig[3:] if contig.startswith("chr") else f"chr{contig}"
        if alternative in references:
            raise ValueError(f"Chromosome naming mismatch: gene BED uses {contig} "
                             f"but BAM uses {alternative}")
        raise ValueError(f"Cannot find chromosome {contig} in BAM file")

    def _write_summary(self, result: FilterResult):
        """Write run counters as JSON"""
        summary = {
            'sample_name': self.config.sample_name,
            'analysis_date': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            'genome_version': self.config.genome_version,
            'output_vcf': self.config.output_vcf,
            'filter_counts': result.to_dict(),
            'caller': {
                'returncode': self.caller_result.returncode if self.caller_result else None,
                'policy': self.config.caller_failure_policy,
            },
            'pipeline_config': {
                'min_vaf': self.config.min_vaf,
                'min_sv_alt_length': self.config.min_sv_alt_length,
                'extension_length': self.config.extension_length,
                'min_itd_alt_length': self.config.min_itd_alt_length,
                'five_prime_label': self.config.five_prime_label,
                'three_prime_label': self.config.three_prime_label,
            }
        }

        summary_file = Path(self.config.summary_json)
        summary_file.parent.mkdir(parents=True, exist_ok=True)
        with open(summary_file, 'w') as f:
            json.dump(summary, f, indent=2)

        self.logger.info(f"Saved run summary to {summary_file}")

    def _cleanup(self):
        """Clean up temporary files"""
        if self.config.debug:  # Keep temp files in debug mode
            for temp_dir in self.temp_dirs:
                self.logger.info(f"Keeping intermediate files in {temp_dir}")
            return

        for temp_dir in self.temp_dirs:
            try:
                shutil.rmtree(temp_dir)
                self.logger.debug(f"Cleaned up temp directory: {temp_dir}")
            except OSError as e:
                self.logger.warning(f"Failed to delete intermediate files in {temp_dir}: {e}")
        self.temp_dirs = []


def check_dependencies(config: FGFR1Config) -> List[str]:
    """Check required external tools"""
    missing = []

    for tool in ['bash', 'perl', 'Rscript']:
        if not shutil.which(tool):
            missing.append(f"{tool} (not in PATH)")

    for tool in [config.vardict_path, config.teststrandbias_path, config.var2vcf_path]:
        if not shutil.which(os.path.expanduser(tool)):
            missing.append(f"{tool} (not found or not executable)")

    return missing


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    # Parse arguments
    config = parse_arguments(argv)

    # Check dependencies
    missing_deps = check_dependencies(config)
    if missing_deps:
        print("Error: Missing dependencies:")
        for dep in missing_deps:
            print(f"  - {dep}")
        print("\nPlease install missing dependencies and try again.")
        sys.exit(1)

    print(f"FGFR1-ITD-seeker v{__version__}")

    # Run pipeline
    detector = FGFR1ITDDetector(config)
    try:
        result = detector.run()
    except Exception as e:
        print(f"\n❌ Analysis failed: {e}")
        sys.exit(1)

    print(f"Total variants processed: {result.total_variants}")
    print(f"FGFR1 ITD variants found: {result.itd_variants}")
    print(f"\n✅ Analysis complete! Results saved to: {config.output_vcf}")


if __name__ == "__main__":
    main()
