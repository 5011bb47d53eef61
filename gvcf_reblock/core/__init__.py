"""Reblocking core.

Modules, in pipeline order:
	multiplexer – merge shards of one sample, restrict to regions
	classifier  – keep / downgrade / drop decisions per record
	subsetter   – allele subsetting and trimming of kept variants
	annotations – per-allele re-indexing and site summary recomputation
	compactor   – band quantisation and reference-block merging (stateful fold)
	filters     – filter propagation at emission time
	engine      – the assembled pipeline

Supporting modules: records (record model), bands (GQ bands) and genotypes
(likelihood arithmetic). Nothing is imported here; import the modules directly.
"""
