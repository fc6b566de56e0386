"""Vendor coordinate rewrites into canonical form."""

import pytest

from arraydata.datafile.raw import RawDataFile
from arraydata.datafile.transformers import common_prefix, common_suffix
from arraydata.datafile.types import CANONICAL_HEADINGS
from arraydata.errors import SectionParseError

pytestmark = pytest.mark.unit


@pytest.fixture
def rewrite(internal_config, write_datafile):
    """Resolve and rewrite a file; returns (datafile layout, rows)."""
    def _rewrite(lines, name="vendor.txt", linebreak="\n"):
        path = write_datafile(name, lines, linebreak)
        with RawDataFile(path, internal_config) as datafile:
            datafile.parse_header()
            vendor = datafile.format_type
            datafile.fix_known_text_format()
            rows = list(datafile.reader)
            return {
                "vendor": vendor,
                "format_type": datafile.format_type,
                "index_columns": datafile.index_columns,
                "headings": datafile.column_headings,
                "warnings": datafile.warnings,
            }, rows

    return _rewrite


class TestCommonAffixes:

    def test_prefix(self):
        assert common_prefix(["S1.AVG_Signal", "S1.Detection"]) == "S1."

    def test_prefix_leaves_values_non_empty(self):
        assert common_prefix(["ab", "abc"]) == "a"

    def test_suffix(self):
        assert common_suffix(["Signal_S1", "Detection_S1"]) == "_S1"

    def test_empty(self):
        assert common_prefix([]) == ""


class TestBlockVendors:

    def test_genepix_two_blocks(self, rewrite):
        layout, rows = rewrite([
            "ATF\t1.0",
            "2\t10",
            '"Block"\t"Column"\t"Row"\t"Name"\t"ID"\t"X"\t"Y"\t"F635 Median"\t"B635 Median"\t"Flags"',
            "1\t1\t1\tg1\tid1\t10\t10\t500\t50\t0",
            "1\t2\t1\tg2\tid2\t100\t10\t600\t60\t0",
            "2\t1\t1\tg3\tid3\t160\t10\t700\t70\t0",
            "2\t2\t1\tg4\tid4\t250\t10\t800\t80\t-50",
        ], name="sample.gpr")

        assert layout["vendor"] == "GenePix"
        assert layout["format_type"] == "Generic"
        assert layout["index_columns"] == [0, 1, 2, 3]
        assert layout["headings"] == CANONICAL_HEADINGS + ["Name", "ID", "F635 Median", "B635 Median", "Flags"]
        assert rows == [
            "1\t1\t1\t1\tg1\tid1\t500\t50\t0",
            "1\t1\t2\t1\tg2\tid2\t600\t60\t0",
            "2\t1\t1\t1\tg3\tid3\t700\t70\t0",
            "2\t1\t2\t1\tg4\tid4\t800\t80\t-50",
        ]

    def test_genepix_keeps_dos_linebreaks(self, rewrite):
        layout, rows = rewrite([
            "Block\tColumn\tRow\tX\tY\tF635 Median",
            "1\t1\t1\t10\t10\t500",
        ], linebreak="\r\n")

        assert rows == ["1\t1\t1\t1\t500"]

    def test_scanalyze_remaps_channels(self, rewrite):
        layout, rows = rewrite([
            "REMARK CH1 IMAGE scan_Cy5.tif",
            "REMARK CH2 IMAGE scan_Cy3.tif",
            "SPOT\tGRID\tTOP\tLEFT\tBOT\tRIGHT\tROW\tCOL\tCH1I\tCH2I",
            "1\t1\t0\t0\t10\t10\t1\t1\t100\t200",
            "2\t1\t90\t90\t100\t100\t2\t2\t110\t210",
            "3\t2\t0\t150\t10\t160\t1\t1\t120\t220",
            "4\t2\t90\t240\t100\t250\t2\t2\t130\t230",
        ])

        assert layout["vendor"] == "Scanalyze"
        assert layout["headings"] == CANONICAL_HEADINGS + ["SPOT", "CH2I", "CH1I"]
        assert rows == [
            "1\t1\t1\t1\t1\t100\t200",
            "1\t1\t2\t2\t2\t110\t210",
            "2\t1\t1\t1\t3\t120\t220",
            "2\t1\t2\t2\t4\t130\t230",
        ]


class TestDirectCoordinateVendors:

    def test_agilent(self, rewrite):
        layout, rows = rewrite([
            "FEATURES\tFeatureNum\tRow\tCol\tPositionX\tPositionY\tgProcessedSignal\trProcessedSignal\tLogRatio",
            "DATA\t1\t3\t7\t10.5\t20.5\t100.5\t200.5\t-0.3",
        ])

        assert layout["vendor"] == "Agilent"
        assert layout["headings"] == CANONICAL_HEADINGS + [
            "FEATURES", "FeatureNum", "gProcessedSignal", "rProcessedSignal", "LogRatio",
        ]
        assert rows == ["1\t1\t7\t3\tDATA\t1\t100.5\t200.5\t-0.3"]

    def test_codelink_drops_blank_lines(self, rewrite):
        layout, rows = rewrite([
            "Logical_row\tLogical_col\tCenter_X\tCenter_Y\tSpot_mean",
            "3\t5\t10\t20\t999",
            "",
            "4\t6\t11\t21\t888",
        ])

        assert layout["vendor"] == "CodeLink"
        assert rows == ["1\t1\t5\t3\t999", "1\t1\t6\t4\t888"]

    def test_other_vendors_keep_blank_lines(self, rewrite):
        _, rows = rewrite([
            "Row\tCol\tPositionX\tPositionY\tgProcessedSignal",
            "1\t1\t0\t0\t5",
            "",
        ])
        assert rows == ["1\t1\t1\t1\t5", ""]

    def test_ucsfspot_strips_leading_zeros(self, rewrite):
        _, rows = rewrite([
            "Arr-colx\tArr-rowy\tSpot-colx\tSpot-rowy\tValue",
            "01\t02\t003\t10\t55",
        ])
        assert rows == ["1\t2\t3\t10\t55"]

    def test_arrayvision_pairs(self, rewrite):
        layout, rows = rewrite([
            "Primary\tSecondary\tMTM Dens",
            "1 - 2\t3 - 4\t0.5",
        ])

        assert layout["vendor"] == "ArrayVision"
        assert rows == ["2\t1\t4\t3\t0.5"]

    def test_arrayvision_spot_labels(self, rewrite):
        layout, rows = rewrite([
            "Spot labels\tSignal",
            "R1-C2:A-B\t0.5",
        ])

        assert layout["format_type"] == "Generic"
        assert rows == ["2\t1\t2\t1\t0.5"]

    def test_arrayvision_reporter_labels(self, rewrite):
        layout, rows = rewrite([
            "Spot labels\tSignal",
            "geneX\t0.5",
        ])

        assert layout["format_type"] == "FGEM"
        assert layout["headings"] == ["Reporter Identifier", "Signal"]
        assert rows == ["geneX\t0.5"]


class TestReporterVendors:

    def test_illumina_strips_hyb_prefix(self, rewrite):
        layout, rows = rewrite([
            "PROBE_ID\tS1.AVG_Signal\tS1.Detection",
            "ILMN_1\t12.5\t0.01",
        ])

        assert layout["vendor"] == "Illumina"
        assert layout["format_type"] == "FGEM"
        assert layout["index_columns"] == [0]
        assert layout["headings"] == ["Reporter Identifier", "AVG_Signal", "Detection"]
        assert rows == ["ILMN_1\t12.5\t0.01"]

    def test_applied_biosystems_strips_suffix(self, rewrite):
        layout, rows = rewrite([
            "Probe_ID\tGene_ID\tSignal_S1\tDetection_S1",
            "p1\tg1\t10\t0.5",
        ])

        assert layout["vendor"] == "AppliedBiosystems"
        assert layout["headings"] == ["Reporter Identifier", "Signal", "Detection"]
        assert rows == ["p1\t10\t0.5"]


class TestSectionedVendors:

    def test_imagene_label_from_image_file(self, rewrite):
        layout, rows = rewrite([
            "Begin Header",
            "Image File\tC:\\scans\\slide_cy5.tif",
            "End Header",
            "Meta Column\tMeta Row\tColumn\tRow\tField\tGene ID\t\tFlag\tSignal Mean",
            "1\t1\t2\t3\tA\tg1\t\t0\t123.4",
        ])

        assert layout["vendor"] == "ImaGene"
        assert layout["headings"] == CANONICAL_HEADINGS + ["Flag_Cy5", "Signal Mean_Cy5"]
        assert rows == ["1\t1\t2\t3\t0\t123.4"]

    def test_imagene_without_label_warns(self, rewrite):
        layout, _ = rewrite([
            "Meta Column\tMeta Row\tColumn\tRow\tField\tGene ID\t\tSignal Mean",
            "1\t1\t2\t3\tA\tg1\t\t123.4",
        ], name="nolabel.txt")

        assert layout["headings"][-1] == "Signal Mean"
        assert any("Unable to determine channel assignment for file nolabel.txt" in w
                   for w in layout["warnings"])

    def test_imagene3_prefixes_sections(self, rewrite):
        layout, rows = rewrite([
            "Begin Extracted Data\tCy3\tCy5",
            "Meta_col\tMeta_row\tSub_col\tSub_row\tName\tSelected\tSignal\tSignal",
            "1\t1\t2\t3\tg\t1\t10\t20",
            "End Extracted Data",
        ])

        assert layout["vendor"] == "ImaGene3"
        assert layout["headings"] == CANONICAL_HEADINGS + ["Cy3 Signal", "Cy5 Signal"]
        assert rows == ["1\t1\t2\t3\t10\t20"]

    def test_imagene3_without_section_line(self, internal_config, write_datafile):
        path = write_datafile("imagene3.txt", [
            "Meta_col\tMeta_row\tSub_col\tSub_row\tName\tSelected\tSignal",
            "1\t1\t2\t3\tg\t1\t10",
        ])
        with RawDataFile(path, internal_config) as datafile:
            datafile.parse_header()
            with pytest.raises(SectionParseError, match="extracted data section"):
                datafile.fix_known_text_format()

    def test_scanarray_maps_channels(self, rewrite):
        layout, rows = rewrite([
            "BEGIN IMAGE INFO",
            "Image ID\tChannel\tFluorophor",
            "1\tch1\tCy3",
            "2\tch2\tCy5",
            "END IMAGE INFO",
            "BEGIN DATA",
            "Index\tArray Column\tArray Row\tSpot Column\tSpot Row\tX\tY\tch1 Intensity\tch2 Intensity",
            "1\t1\t1\t1\t1\t100\t200\t1000\t2000",
            "END DATA",
        ])

        assert layout["vendor"] == "ScanArray"
        assert layout["headings"] == CANONICAL_HEADINGS + ["Index", "Cy3 Intensity", "Cy5 Intensity"]
        assert rows == ["1\t1\t1\t1\t1\t1000\t2000"]
        assert layout["warnings"] == []

    def test_generic_passes_through(self, rewrite):
        layout, rows = rewrite([
            "MetaColumn\tMetaRow\tColumn\tRow\tSignal",
            "1\t1\t1\t1\t5",
        ])

        assert layout["vendor"] == layout["format_type"] == "Generic"
        assert rows == ["1\t1\t1\t1\t5"]


# vendor, file lines, headings after the canonical block, rewritten rows
GOLDEN_VENDORS = [
    (
        "QuantArray",
        ["Array Column\tArray Row\tColumn\tRow\tSignal", "2\t3\t4\t5\t100"],
        ["Signal"],
        ["2\t3\t4\t5\t100"],
    ),
    (
        "Spotfinder",
        ["MC\tMR\tSC\tSR\tC\tR\tUID\tIA", "1\t2\t3\t4\t10\t20\tu1\t500"],
        ["UID", "IA"],
        ["1\t2\t3\t4\tu1\t500"],
    ),
    (
        "MEV",
        ["MC\tMR\tC\tR\tUID\tIA", "1\t2\t3\t4\tu1\t500"],
        ["IA"],
        ["1\t2\t3\t4\t500"],
    ),
    (
        "BlueFuse",
        ["ROW\tCOL\tSUBGRIDROW\tSUBGRIDCOL\tAMPCH1", "1\t2\t3\t4\t900"],
        ["AMPCH1"],
        ["2\t1\t4\t3\t900"],
    ),
    (
        "CSIRO_Spot",
        ["indexs\tgrid_c\tgrid_r\tspot_c\tspot_r\tSignal", "7\t1\t2\t3\t4\t55"],
        ["Signal"],
        ["1\t2\t3\t4\t55"],
    ),
    (
        "NimbleScanFeature",
        ["PROBE_ID\tX\tY\tX_PIXEL\tY_PIXEL\tPM", "p1\t5\t6\t50\t60\t1000"],
        ["PM"],
        ["1\t1\t5\t6\t1000"],
    ),
    (
        "NimbleScanNorm",
        ["PROBE_ID\tX\tY\tSIGNAL", "p1\t5\t6\t7.5"],
        ["SIGNAL"],
        ["1\t1\t5\t6\t7.5"],
    ),
    (
        "NimblegenNASA",
        ["Feature_ID\tProbID_BC\tX_BC\tY_BC\tSignal", "f1\tp1\t3\t4\t88"],
        ["Signal"],
        ["1\t1\t3\t4\t88"],
    ),
    (
        "ImaGene7",
        [
            "Block\tColumn\tRow\tCh1 XCoord\tCh1 YCoord\tCh2 XCoord\tCh2 YCoord\tSignal Mean",
            "1\t1\t1\t10\t10\t11\t11\t500",
            "1\t2\t1\t100\t10\t101\t11\t510",
            "2\t1\t1\t160\t10\t161\t11\t600",
            "2\t2\t1\t250\t10\t251\t11\t610",
        ],
        ["Signal Mean"],
        ["1\t1\t1\t1\t500", "1\t1\t2\t1\t510", "2\t1\t1\t1\t600", "2\t1\t2\t1\t610"],
    ),
    (
        "ImaGeneFields",
        [
            "Begin Field Dimensions",
            "Field\tMetarows\tMetacols\tRows\tCols",
            "1\t1\t1\t2\t2",
            "2\t1\t1\t2\t2",
            "End Field Dimensions",
            "Field\tColumn\tRow\tXCoord\tYCoord\tSignal Mean",
            "1\t1\t1\t10\t10\t500",
            "1\t2\t1\t100\t10\t510",
            "2\t1\t1\t160\t10\t600",
            "2\t2\t1\t250\t10\t610",
        ],
        ["Signal Mean"],
        ["1\t1\t1\t1\t500", "1\t1\t2\t1\t510", "2\t1\t1\t1\t600", "2\t1\t2\t1\t610"],
    ),
]


class TestGoldenVendors:

    @pytest.mark.parametrize(
        "vendor, lines, headings, expected",
        GOLDEN_VENDORS,
        ids=[case[0] for case in GOLDEN_VENDORS],
    )
    def test_rewrite(self, rewrite, vendor, lines, headings, expected):
        layout, rows = rewrite(lines)

        assert layout["vendor"] == vendor
        assert layout["format_type"] == "Generic"
        assert layout["index_columns"] == [0, 1, 2, 3]
        assert layout["headings"] == CANONICAL_HEADINGS + headings
        assert rows == expected

    def test_genepix_narrow_first_block_on_metarow_one(self, rewrite):
        layout, rows = rewrite([
            "Block\tColumn\tRow\tX\tY\tF635 Median",
            "1\t1\t1\t10\t10\t500",
            "1\t2\t1\t20\t10\t510",
            "2\t1\t1\t160\t10\t600",
            "2\t2\t1\t250\t10\t610",
            "3\t1\t1\t310\t10\t700",
            "3\t2\t1\t400\t10\t710",
        ])

        assert layout["vendor"] == "GenePix"
        assert rows == [
            "1\t1\t1\t1\t500",
            "1\t1\t2\t1\t510",
            "2\t1\t1\t1\t600",
            "2\t1\t2\t1\t610",
            "3\t1\t1\t1\t700",
            "3\t1\t2\t1\t710",
        ]


class TestArrayVisionLastRow:
    """Rows are rewritten one by one; the file layout follows the last row."""

    @pytest.mark.parametrize("lines, format_type, headings, expected", [
        (
            ["Spot labels\tSignal", "R1-C2:A-B\t0.5", "geneX\t0.7"],
            "FGEM",
            ["Reporter Identifier", "Signal"],
            ["2\t1\t2\t1\t0.5", "geneX\t0.7"],
        ),
        (
            ["Spot labels\tSignal", "geneX\t0.7", "R1-C2:A-B\t0.5"],
            "Generic",
            CANONICAL_HEADINGS + ["Signal"],
            ["geneX\t0.7", "2\t1\t2\t1\t0.5"],
        ),
    ], ids=["reporter-last", "feature-last"])
    def test_mixed_labels(self, rewrite, lines, format_type, headings, expected):
        layout, rows = rewrite(lines)

        assert layout["vendor"] == "ArrayVision_lg2"
        assert layout["format_type"] == format_type
        assert layout["headings"] == headings
        assert rows == expected
