# hcc_biomarkers/core/exceptions.py
"""Error kinds raised by the ranking and validation stages."""


class InvalidInputError(ValueError):
    """Malformed or insufficient input: missing class, mismatched lengths, empty matrix.

    A caller contract violation. The message names the failed check and, where
    one is involved, the gene.
    """


class DegenerateResultError(RuntimeError):
    """A well-formed request that cannot yield a meaningful statistic.

    Raised for an empty bootstrap distribution or a gene with no usable
    observation in one of the two classes.
    """
