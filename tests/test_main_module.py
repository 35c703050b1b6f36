#!/usr/bin/env python3
"""
Tests for the FGFR1 ITD detection pipeline orchestration
"""

import io
import json
import os
import shutil
import tempfile
import unittest
from unittest import mock

from config import FGFR1Config
from exon_coordinates import MissingCoordinatesError
from itd_vcf_filter import FilterResult
from main_module import FGFR1ITDDetector, check_dependencies, main, read_bed_contig
from vardict_runner import CallerResult, VariantCallerError

RAW_VCF = (
    "##fileformat=VCFv4.2\n"
    "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tSample\n"
    "chr8\t5100\t.\tA\t" + "A" * 4005 + "\t50\tPASS\tSVTYPE=DUP\tGT\t0/1\n"
    "chr8\t5100\t.\tA\tT\t50\tPASS\t.\tGT\t0/1\n"
    "chr8\t150\t.\tA\t" + "A" * 4005 + "\t50\tPASS\tSVTYPE=DUP\tGT\t0/1\n"
)


def touch(path, content=""):
    with open(path, 'w') as f:
        f.write(content)
    return path


class TestFGFR1ITDDetector(unittest.TestCase):
    """Test the end to end pipeline with VarDict and pysam mocked"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        d = self.temp_dir
        bam = touch(os.path.join(d, "sample.bam"))
        touch(os.path.join(d, "sample.bai"))
        self.config = FGFR1Config(
            reference_genome=touch(os.path.join(d, "hg38.fa")),
            bam_file=bam,
            output_vcf=os.path.join(d, "results", "sample_FGFR1_ITD.vcf"),
            sample_name="Sample",
            gene_bed=touch(os.path.join(d, "FGFR1_gene.bed"),
                           "chr8\t38411138\t38468834\tFGFR1\n"),
            breakpoint_bed=touch(os.path.join(d, "breakpoints.bed"),
                                 "chr8\t100\t200\tFGFR1;tx;exon-9-10\n"
                                 "chr8\t5000\t5200\tFGFR1;tx;exon-18\n"),
            summary_json=os.path.join(d, "results", "summary.json"),
        )

        alignment_patcher = mock.patch("main_module.pysam.AlignmentFile")
        self.mock_alignment = alignment_patcher.start()
        self.mock_alignment.return_value.__enter__.return_value.references = ("chr1", "chr8")
        self.addCleanup(alignment_patcher.stop)

        self.raw_vcf_paths = []
        vardict_patcher = mock.patch("main_module.run_vardict", side_effect=self._fake_vardict)
        self.mock_vardict = vardict_patcher.start()
        self.addCleanup(vardict_patcher.stop)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def _fake_vardict(self, config, output_vcf):
        self.raw_vcf_paths.append(output_vcf)
        touch(output_vcf, RAW_VCF)
        return CallerResult(command="vardict", returncode=0, stderr="", output_vcf=output_vcf)

    def test_run_filters_and_reports(self):
        result = FGFR1ITDDetector(self.config).run()
        self.assertEqual(result.total_variants, 3)
        self.assertEqual(result.itd_variants, 1)

        with open(self.config.output_vcf) as f:
            lines = f.read().splitlines()
        self.assertEqual(len(lines), 3)
        self.assertTrue(lines[2].startswith("chr8\t5100\t.\tA\tAAAA"))

        with open(self.config.summary_json) as f:
            summary = json.load(f)
        self.assertEqual(summary['filter_counts']['itd_variants'], 1)
        self.assertEqual(summary['caller']['returncode'], 0)

    def test_intermediate_files_removed(self):
        FGFR1ITDDetector(self.config).run()
        self.assertFalse(os.path.exists(os.path.dirname(self.raw_vcf_paths[0])))

    def test_intermediate_files_kept_in_debug(self):
        self.config.debug = True
        FGFR1ITDDetector(self.config).run()
        work_dir = os.path.dirname(self.raw_vcf_paths[0])
        self.assertTrue(os.path.exists(self.raw_vcf_paths[0]))
        shutil.rmtree(work_dir)

    def test_missing_labels_abort_before_calling(self):
        touch(self.config.breakpoint_bed, "chr8\t100\t200\tFGFR1;tx;exon-9-10\n")
        with self.assertRaises(MissingCoordinatesError):
            FGFR1ITDDetector(self.config).run()
        self.mock_vardict.assert_not_called()
        self.assertFalse(os.path.exists(self.config.output_vcf))

    def test_missing_bam_index(self):
        os.remove(os.path.join(self.temp_dir, "sample.bai"))
        with self.assertRaises(FileNotFoundError) as ctx:
            FGFR1ITDDetector(self.config).run()
        self.assertIn("BAM index", str(ctx.exception))

    def test_bam_bai_index_accepted(self):
        os.rename(os.path.join(self.temp_dir, "sample.bai"),
                  os.path.join(self.temp_dir, "sample.bam.bai"))
        FGFR1ITDDetector(self.config).preflight_checks()

    def test_missing_reference(self):
        os.remove(self.config.reference_genome)
        with self.assertRaises(FileNotFoundError) as ctx:
            FGFR1ITDDetector(self.config).run()
        self.assertIn("reference genome", str(ctx.exception))

    def test_contig_naming_mismatch(self):
        self.mock_alignment.return_value.__enter__.return_value.references = ("1", "8")
        with self.assertRaises(ValueError) as ctx:
            FGFR1ITDDetector(self.config).preflight_checks()
        self.assertIn("naming mismatch", str(ctx.exception))

    def test_caller_failure_propagates(self):
        self.mock_vardict.side_effect = VariantCallerError("VarDict pipeline failed")
        with self.assertRaises(VariantCallerError):
            FGFR1ITDDetector(self.config).run()

    def test_best_effort_filters_partial_output(self):
        self.config.caller_failure_policy = "best-effort"
        partial_vcf = RAW_VCF.splitlines(keepends=True)[:3]

        def failing_vardict(config, output_vcf):
            touch(output_vcf, "".join(partial_vcf))
            return CallerResult(command="vardict", returncode=1,
                                stderr="truncated", output_vcf=output_vcf)

        self.mock_vardict.side_effect = failing_vardict
        result = FGFR1ITDDetector(self.config).run()
        self.assertEqual(result.total_variants, 1)
        self.assertEqual(result.itd_variants, 1)

        with open(self.config.output_vcf) as f:
            self.assertEqual(f.read(), "".join(partial_vcf))
        with open(self.config.summary_json) as f:
            summary = json.load(f)
        self.assertEqual(summary['caller']['returncode'], 1)
        self.assertEqual(summary['caller']['policy'], "best-effort")

    def test_best_effort_with_empty_caller_output(self):
        self.config.caller_failure_policy = "best-effort"

        def failing_vardict(config, output_vcf):
            touch(output_vcf)
            return CallerResult(command="vardict", returncode=1,
                                stderr="", output_vcf=output_vcf)

        self.mock_vardict.side_effect = failing_vardict
        result = FGFR1ITDDetector(self.config).run()
        self.assertEqual(result.total_variants, 0)
        self.assertEqual(os.path.getsize(self.config.output_vcf), 0)


class TestHelpers(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_read_bed_contig_skips_headers(self):
        bed = touch(os.path.join(self.temp_dir, "gene.bed"),
                    "track name=FGFR1\n# comment\n\n8\t1\t100\tFGFR1\n")
        self.assertEqual(read_bed_contig(bed), "8")

    def test_read_bed_contig_empty(self):
        bed = touch(os.path.join(self.temp_dir, "gene.bed"), "# comment\n")
        self.assertIsNone(read_bed_contig(bed))

    @mock.patch("main_module.shutil.which", return_value=None)
    def test_check_dependencies_reports_all_tools(self, _):
        config = FGFR1Config(reference_genome="r.fa", bam_file="s.bam",
                             output_vcf="o.vcf", sample_name="S")
        missing = check_dependencies(config)
        self.assertEqual(len(missing), 6)
        self.assertTrue(any("Rscript" in m for m in missing))

    @mock.patch("main_module.check_dependencies", return_value=["vardict (not found or not executable)"])
    def test_main_exits_on_missing_dependencies(self, _):
        with self.assertRaises(SystemExit) as ctx:
            main(["-r", "r.fa", "-b", "s.bam", "-o", "o.vcf", "-n", "S"])
        self.assertEqual(ctx.exception.code, 1)

    @mock.patch("main_module.FGFR1ITDDetector.run",
                return_value=FilterResult(total_variants=12, itd_variants=2))
    @mock.patch("main_module.check_dependencies", return_value=[])
    def test_main_prints_counters(self, _deps, mock_run):
        with mock.patch("sys.stdout", new_callable=io.StringIO) as stdout:
            main(["-r", "r.fa", "-b", "s.bam", "-o", "o.vcf", "-n", "S"])
        mock_run.assert_called_once()
        output = stdout.getvalue()
        self.assertIn("Total variants processed: 12", output)
        self.assertIn("FGFR1 ITD variants found: 2", output)
        self.assertIn("Results saved to: o.vcf", output)


if __name__ == '__main__':
    unittest.main()
