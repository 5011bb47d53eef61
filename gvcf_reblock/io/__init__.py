"""I/O subpackage.

Plain-text GVCF reading / writing plus the reference collaborators (sequence
dictionary, indexed FASTA, region lists) used by the engine.
"""

from .header import VcfHeader  # noqa: F401
from .reference import FastaReference, SequenceDictionary, parse_regions  # noqa: F401
from .vcf_reader import GVCFReader  # noqa: F401
from .vcf_writer import GVCFWriter, format_record  # noqa: F401

__all__ = [
	"VcfHeader",
	"GVCFReader",
	"GVCFWriter",
	"format_record",
	"SequenceDictionary",
	"FastaReference",
	"parse_regions",
]
