#!/usr/bin/env python3
"""
VarDict Runner Module
Builds and runs the VarDict -> teststrandbias.R -> var2vcf_valid.pl pipeline
"""

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from config import FGFR1Config

logger = logging.getLogger(__name__)


class VariantCallerError(RuntimeError):
    """Raised when the VarDict pipeline exits with an error under the fail-fast policy"""


@dataclass
class CallerResult:
    """Outcome of one VarDict pipeline run"""
    command: str
    returncode: int
    stderr: str
    output_vcf: str

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def _tool(path: str) -> str:
    return shlex.quote(os.path.expanduser(path))


class VarDictCaller:
    """Run VarDict in amplicon-free SV mode over the FGFR1 gene region"""

    def __init__(self, config: FGFR1Config):
        self.config = config

    def build_command(self, output_vcf: str) -> str:
        """Compose the shell pipeline that writes the raw VCF to output_vcf"""
        cfg = self.config
        sample = shlex.quote(cfg.sample_name)

        vardict = (
            f"{_tool(cfg.vardict_path)} -G {shlex.quote(cfg.reference_genome)} -f {cfg.min_vaf:f} "
            f"-r 4 -o 1.5 -th {cfg.threads} -L {cfg.min_sv_alt_length} -x {cfg.extension_length} "
            f"-N {sample} -b {shlex.quote(cfg.bam_file)} -c 1 -S 2 -E 3 -g 4 "
            f"{shlex.quote(cfg.gene_bed)}"
        )
        var2vcf = f"{_tool(cfg.var2vcf_path)} -A -N {sample} -E -f {cfg.min_vaf:f}"

        return (f"{vardict} | {_tool(cfg.teststrandbias_path)} | {var2vcf} "
                f"> {shlex.quote(output_vcf)}")

    def run(self, output_vcf: str) -> CallerResult:
        """
        Run the pipeline

        Under the fail-fast policy a non-zero exit from any stage raises
        VariantCallerError. Under best-effort the failure is logged and an
        empty output VCF is left in place if the pipeline wrote nothing.
        """
        command = self.build_command(output_vcf)
        logger.info("Running VarDict pipeline...")
        logger.debug(f"Command: {command}")

        # pipefail so a VarDict failure is not masked by the last stage
        result = subprocess.run(f"set -o pipefail; {command}", shell=True,
                                executable="/bin/bash", capture_output=True, text=True)

        caller_result = CallerResult(command=command, returncode=result.returncode,
                                     stderr=result.stderr, output_vcf=output_vcf)

        if caller_result.succeeded:
            if result.stderr:
                logger.debug(f"VarDict stderr: {result.stderr.strip()}")
            logger.info(f"VarDict finished: {output_vcf}")
            return caller_result

        logger.error(f"VarDict pipeline failed with exit code {result.returncode}: "
                     f"{result.stderr.strip()}")
        if self.config.abort_on_caller_failure:
            raise VariantCallerError(
                f"VarDict pipeline failed with exit code {result.returncode}")

        logger.warning("Continuing with partial VarDict output (best-effort policy)")
        Path(output_vcf).touch(exist_ok=True)
        return caller_result


def run_vardict(config: FGFR1Config, output_vcf: str) -> CallerResult:
    """Main function to run VarDict with the given configuration"""
    return VarDictCaller(config).run(output_vcf)
