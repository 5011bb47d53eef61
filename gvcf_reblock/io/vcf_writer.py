"""GVCF writer with all-or-nothing output.

Records go to a temporary file next to the destination; the file is renamed
into place only by :meth:`GVCFWriter.close`. :meth:`GVCFWriter.abort` (or an
exception inside a ``with`` block) deletes it, so a failed run leaves no
output behind.
"""

from __future__ import annotations

import gzip
import logging
import os
import tempfile
from typing import List, Optional

from ..core.records import NON_REF, RefBlock, SiteRecord, VariantSite
from ..utils import MISSING, format_info_field, format_number, join_values
from .header import VcfHeader

logger = logging.getLogger(__name__)

__all__ = ["GVCFWriter", "format_record"]


def _filter_column(record: SiteRecord) -> str:
	return ";".join(sorted(record.filters)) if record.filters else MISSING


def _value(v: Optional[object]) -> str:
	return MISSING if v is None else str(v)


def _block_line(record: SiteRecord, block: RefBlock) -> List[str]:
	keys = ["GT", "DP", "GQ", "MIN_DP"]
	values = [block.gt, _value(block.dp), str(block.gq), _value(block.min_dp)]
	if block.genotype_filters:
		keys.append("FT")
		values.append(";".join(sorted(block.genotype_filters)))
	return [
		record.contig,
		str(record.start),
		MISSING,
		record.ref[:1],
		NON_REF,
		MISSING,
		_filter_column(record),
		f"END={record.end}",
		":".join(keys),
		":".join(values),
	]


def _sample_value(site: VariantSite, key: str) -> str:
	gt = site.genotype
	if key == "GT":
		return gt.gt
	if key == "GQ":
		return _value(gt.gq)
	if key == "DP":
		return _value(gt.dp)
	if key == "AD":
		return MISSING if gt.ad is None else join_values(gt.ad)
	if key == "PL":
		return MISSING if gt.pl is None else join_values(gt.pl)
	return _value(gt.attributes.get(key))


def _variant_line(record: SiteRecord, site: VariantSite) -> List[str]:
	keys = ["GT"] + [k for k in site.genotype.format_keys if k != "GT"]
	return [
		record.contig,
		str(record.start),
		site.id or MISSING,
		record.ref,
		",".join(site.alleles[1:]),
		format_number(site.qual),
		_filter_column(record),
		format_info_field(site.info),
		":".join(keys),
		":".join(_sample_value(site, k) for k in keys),
	]


def format_record(record: SiteRecord) -> str:
	"""One VCF data line (without newline)."""
	if isinstance(record.payload, RefBlock):
		cols = _block_line(record, record.payload)
	else:
		cols = _variant_line(record, record.payload)
	return "\t".join(cols)


class GVCFWriter:
	"""Write a header and records to ``path`` atomically.

	Parameters
	----------
	path : str
		Destination; a ``.gz`` suffix selects gzip compression.
	header : VcfHeader
		Final header, written on open.
	"""

	def __init__(self, path: str, header: VcfHeader):
		self.path = path
		self.header = header
		self.records_written = 0
		self._fh = None
		self._tmp: Optional[str] = None

	def open(self) -> "GVCFWriter":
		directory = os.path.dirname(os.path.abspath(self.path))
		fd, self._tmp = tempfile.mkstemp(
			prefix=f".{os.path.basename(self.path)}.", suffix=".partial", dir=directory
		)
		if self.path.endswith(".gz"):
			os.close(fd)
			self._fh = gzip.open(self._tmp, "wt")
		else:
			self._fh = os.fdopen(fd, "wt")
		for line in self.header.lines():
			self._fh.write(line + "\n")
		return self

	def write(self, record: SiteRecord) -> None:
		if self._fh is None:
			self.open()
		self._fh.write(format_record(record) + "\n")
		self.records_written += 1

	def close(self) -> None:
		"""Finish the file and move it into place."""
		if self._fh is None:
			self.open()
		self._fh.close()
		self._fh = None
		os.replace(self._tmp, self.path)
		logger.debug("wrote %d records to %s", self.records_written, self.path)
		self._tmp = None

	def abort(self) -> None:
		"""Discard everything written so far."""
		if self._fh is not None:
			self._fh.close()
			self._fh = None
		if self._tmp is not None and os.path.exists(self._tmp):
			os.unlink(self._tmp)
			logger.debug("removed partial output for %s", self.path)
		self._tmp = None

	def __enter__(self) -> "GVCFWriter":
		return self.open()

	def __exit__(self, exc_type, exc, tb) -> None:
		if exc_type is None:
			self.close()
		else:
			self.abort()
