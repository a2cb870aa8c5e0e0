from .samplesheet import Sample, find_sample, read_samplesheet

__all__ = ["Sample", "find_sample", "read_samplesheet"]
