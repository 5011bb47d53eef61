"""VCF header model.

Keeps the meta lines verbatim (so unknown lines round-trip untouched) and
parses the structured ones (INFO / FORMAT / FILTER / ALT / contig) on demand.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from typing import Dict, List, Optional

__all__ = ["VcfHeader", "parse_structured_line", "structured_line"]

_STRUCTURED = re.compile(r"^##(?P<kind>[A-Za-z_]+)=<(?P<body>.*)>\s*$")


def parse_structured_line(line: str) -> Optional[Dict[str, str]]:
	"""Parse ``##KIND=<ID=x,Number=1,...>`` into a dict (plus '_kind').

	Quoted values may contain commas and escaped quotes.
	"""
	m = _STRUCTURED.match(line)
	if not m:
		return None
	out: Dict[str, str] = {"_kind": m.group("kind")}
	body = m.group("body")
	key, buf, in_quotes, i = None, [], False, 0
	while i < len(body):
		ch = body[i]
		if in_quotes:
			if ch == "\\" and i + 1 < len(body):
				buf.append(body[i + 1])
				i += 2
				continue
			if ch == '"':
				in_quotes = False
			else:
				buf.append(ch)
		elif ch == '"':
			in_quotes = True
		elif ch == "=" and key is None:
			key, buf = "".join(buf), []
		elif ch == ",":
			if key is not None:
				out[key] = "".join(buf)
			key, buf = None, []
		else:
			buf.append(ch)
		i += 1
	if key is not None:
		out[key] = "".join(buf)
	return out


def structured_line(kind: str, fields: Dict[str, str]) -> str:
	parts = []
	for k, v in fields.items():
		if k == "_kind":
			continue
		if k == "Description":
			v = '"' + v.replace('"', '\\"') + '"'
		parts.append(f"{k}={v}")
	return f"##{kind}=<{','.join(parts)}>"


class VcfHeader:
	"""Meta lines + sample columns of a VCF.

	Parameters
	----------
	meta_lines : list of str
		'##' lines in file order.
	samples : list of str
		Sample names from the #CHROM line.
	"""

	def __init__(self, meta_lines: Optional[List[str]] = None, samples: Optional[List[str]] = None):
		self.meta_lines: List[str] = list(meta_lines or [])
		self.samples: List[str] = list(samples or [])

	def copy(self) -> "VcfHeader":
		return VcfHeader(self.meta_lines, self.samples)

	# -- structured access ------------------------------------------------
	def _definitions(self, kind: str) -> "OrderedDict[str, Dict[str, str]]":
		out: "OrderedDict[str, Dict[str, str]]" = OrderedDict()
		for line in self.meta_lines:
			if not line.startswith(f"##{kind}=<"):
				continue
			parsed = parse_structured_line(line)
			if parsed and "ID" in parsed:
				out[parsed["ID"]] = parsed
		return out

	@property
	def info(self) -> "OrderedDict[str, Dict[str, str]]":
		return self._definitions("INFO")

	@property
	def format(self) -> "OrderedDict[str, Dict[str, str]]":
		return self._definitions("FORMAT")

	@property
	def filters(self) -> "OrderedDict[str, Dict[str, str]]":
		return self._definitions("FILTER")

	@property
	def alts(self) -> "OrderedDict[str, Dict[str, str]]":
		return self._definitions("ALT")

	@property
	def contigs(self) -> "OrderedDict[str, Optional[int]]":
		out: "OrderedDict[str, Optional[int]]" = OrderedDict()
		for cid, fields in self._definitions("contig").items():
			length = fields.get("length")
			out[cid] = int(length) if length and length.isdigit() else None
		return out

	def number_of(self, kind: str, key: str) -> Optional[str]:
		defs = self.info if kind == "INFO" else self.format
		entry = defs.get(key)
		return entry.get("Number") if entry else None

	@property
	def declares_reference_confidence(self) -> bool:
		alts = self.alts
		return "NON_REF" in alts or "*" in alts or any(
			line.startswith("##GVCFBlock") for line in self.meta_lines
		)

	# -- editing ----------------------------------------------------------
	def set_line(self, kind: str, fields: Dict[str, str]) -> None:
		"""Add or replace the ``kind`` definition with the same ID."""
		new = structured_line(kind, fields)
		prefix = f"##{kind}=<ID={fields['ID']},"
		for i, line in enumerate(self.meta_lines):
			if line.startswith(prefix):
				self.meta_lines[i] = new
				return
		self.meta_lines.append(new)

	def remove_line(self, kind: str, key: str) -> None:
		prefix = f"##{kind}=<ID={key},"
		self.meta_lines = [ln for ln in self.meta_lines if not ln.startswith(prefix)]

	def remove_prefix(self, prefix: str) -> None:
		self.meta_lines = [ln for ln in self.meta_lines if not ln.startswith(prefix)]

	def add_meta(self, line: str) -> None:
		if line not in self.meta_lines:
			self.meta_lines.append(line)

	def column_line(self) -> str:
		cols = ["#CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO"]
		if self.samples:
			cols.append("FORMAT")
			cols.extend(self.samples)
		return "\t".join(cols)

	def lines(self) -> List[str]:
		return self.meta_lines + [self.column_line()]
