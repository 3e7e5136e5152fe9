"""Drug-observable nursing home episodes from MDS, MBSF and MedPAR."""

__version__ = '0.1.0'
