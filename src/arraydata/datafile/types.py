"""Enumerations shared by the text and binary parsers."""

from enum import Enum

__all__ = ['FormatType', 'DataType', 'LINE_FORMATS', 'CANONICAL_HEADINGS']


class FormatType(str, Enum):
    """Every layout a data file can be identified as."""
    GENERIC = "Generic"
    GENEPIX = "GenePix"
    ARRAYVISION = "ArrayVision"
    AGILENT = "Agilent"
    SCANALYZE = "Scanalyze"
    SCANARRAY = "ScanArray"
    QUANTARRAY = "QuantArray"
    SPOTFINDER = "Spotfinder"
    MEV = "MEV"
    CODELINK = "CodeLink"
    BLUEFUSE = "BlueFuse"
    UCSFSPOT = "UCSFSpot"
    NIMBLESCAN_FEATURE = "NimbleScanFeature"
    NIMBLEGEN_NASA = "NimblegenNASA"
    IMAGENE = "ImaGene"
    IMAGENE3 = "ImaGene3"
    IMAGENE7 = "ImaGene7"
    IMAGENE_FIELDS = "ImaGeneFields"
    CSIRO_SPOT = "CSIRO_Spot"
    FGEM = "FGEM"
    FGEM_CS = "FGEM_CS"
    GEO = "GEO"
    AFFYNORM = "AffyNorm"
    NIMBLESCAN_NORM = "NimbleScanNorm"
    APPLIED_BIOSYSTEMS = "AppliedBiosystems"
    ARRAYVISION_LG2 = "ArrayVision_lg2"
    ILLUMINA = "Illumina"
    AFFYMETRIX = "Affymetrix"
    UNKNOWN = "Unknown"


class DataType(str, Enum):
    """Declared role of a data file within a submission."""
    RAW = "raw"
    NORMALIZED = "normalized"
    TRANSFORMED = "transformed"
    MEASURED_DATA_MATRIX = "measured_data_matrix"
    EXP = "EXP"

    @property
    def is_matrix(self) -> bool:
        """Combined data matrices carry per-column hybridization ids."""
        return self in (DataType.TRANSFORMED, DataType.MEASURED_DATA_MATRIX)


LINE_FORMATS = {
    "\n": "Unix",
    "\r\n": "DOS",
    "\r": "Mac",
}

CANONICAL_HEADINGS = ["MetaColumn", "MetaRow", "Column", "Row"]
