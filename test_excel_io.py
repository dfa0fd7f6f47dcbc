import io
import unittest

from openpyxl import Workbook, load_workbook

from analysis import NOT_AVAILABLE, PhysicalInputs, ThermalMetrics, calculate_physical_properties
from errors import ParseError
from excel_io import (
    REPORT_ROWS, append_column, append_to_template, build_report_column,
    column_values, extract_column, read_grid, to_number,
)


def _xlsx_bytes(rows, extra_sheet=None) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Summary"
    for r, row in enumerate(rows, start=1):
        for c, value in enumerate(row, start=1):
            if value is not None:
                ws.cell(row=r, column=c, value=value)
    if extra_sheet is not None:
        other = wb.create_sheet("Notes")
        for row in extra_sheet:
            other.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _metrics(**overrides) -> ThermalMetrics:
    values = dict(
        time_to_100=62, time_to_150=95, time_to_180=NOT_AVAILABLE, time_to_200=NOT_AVAILABLE,
        temp_at_60=100.0, temp_at_120=164.5, temp_at_300=NOT_AVAILABLE, temp_at_600=NOT_AVAILABLE,
        anchor_index=2,
    )
    values.update(overrides)
    return ThermalMetrics(**values)


def _physical() -> PhysicalInputs:
    return PhysicalInputs(
        thickness=1.5, weight_raw=2.345, width=100, length=100,
        heat_source_temp="200°C", pressure="5 bar",
        evaluation_date="2026-10-19", remarks="first batch",
    )


class TestToNumber(unittest.TestCase):
    def test_numbers(self):
        self.assertEqual(to_number(25), 25.0)
        self.assertEqual(to_number(25.5), 25.5)
        self.assertEqual(to_number(0), 0.0)

    def test_strings(self):
        self.assertEqual(to_number(" 31.2 "), 31.2)
        self.assertEqual(to_number("31,2"), 31.2)
        self.assertIsNone(to_number("Temp"))
        self.assertIsNone(to_number(""))

    def test_non_numbers(self):
        self.assertIsNone(to_number(None))
        self.assertIsNone(to_number(True))
        self.assertIsNone(to_number(float("nan")))
        self.assertIsNone(to_number(float("inf")))


class TestReadLog(unittest.TestCase):
    def test_extract_default_column(self):
        content = _xlsx_bytes([
            ["No", "Date", "Time", "Temp"],
            [1, "d", "t", 25.0],
            [2, "d", "t", "bad"],
            [3, "d", "t", None],
            [4, "d", "t", 27.5],
        ])
        col = extract_column(content)

        self.assertEqual(len(col), 5)
        self.assertTrue(col.isna()[0])
        self.assertEqual(col[1], 25.0)
        self.assertTrue(col.isna()[2])
        self.assertTrue(col.isna()[3])
        self.assertEqual(col[4], 27.5)

    def test_short_rows_are_absent(self):
        grid = [[1, 2], [1, 2, 3, 40], []]
        col = column_values(grid, 3)
        self.assertEqual(len(col), 3)
        self.assertEqual(col.notna().tolist(), [False, True, False])

    def test_other_column(self):
        grid = [["a", 5], ["b", "6"]]
        self.assertEqual(column_values(grid, 1).tolist(), [5.0, 6.0])

    def test_negative_column_rejected(self):
        with self.assertRaises(ValueError):
            column_values([[1]], -1)

    def test_csv_log(self):
        content = "No,Date,Time,Temp\n1,d,t,25\n2,d,t,26.5\n".encode("utf-8")
        col = extract_column(content, filename="log.csv")
        self.assertEqual(len(col), 3)
        self.assertEqual(col.tolist()[1:], [25.0, 26.5])

    def test_semicolon_csv_with_decimal_comma(self):
        content = "1;d;t;25,5\n2;d;t;26,0\n".encode("utf-8")
        col = extract_column(content, filename="log.csv")
        self.assertEqual(col.tolist(), [25.5, 26.0])

    def test_corrupt_file_raises(self):
        with self.assertRaises(ParseError):
            extract_column(b"this is not a workbook", filename="log.xlsx")

    def test_empty_file_raises(self):
        with self.assertRaises(ParseError):
            read_grid(b"", "log.xlsx")


class TestAppendColumn(unittest.TestCase):
    def test_ragged_rows(self):
        grid = [["a", "b", "c"], ["x"], [], ["keep", "me", "as", "is", "!"], ["z"], ["tail"]]
        col = append_column(grid, ["v0", "v1"])

        self.assertEqual(col, 3)
        self.assertEqual(grid[0], ["a", "b", "c", "v0"])
        self.assertEqual(grid[1], ["x", None, None, "v1"])
        self.assertEqual(grid[2], [])

    def test_five_values_over_three_rows(self):
        grid = [[1, 2, 3], [1], []]
        col = append_column(grid, ["a", "b", "c", "d", "e"])

        self.assertEqual(col, 3)
        self.assertEqual(len(grid), 5)
        for i, row in enumerate(grid):
            self.assertEqual(len(row), 4)
            self.assertEqual(row[-1], "abcde"[i])
        self.assertEqual(grid[1], [1, None, None, "b"])
        self.assertEqual(grid[2], [None, None, None, "c"])

    def test_rows_beyond_values_untouched(self):
        grid = [[1], [1, 2, 3, 4, 5, 6]]
        append_column(grid, ["only"])
        self.assertEqual(grid[0], [1, "only"])
        self.assertEqual(grid[1], [1, 2, 3, 4, 5, 6])

    def test_empty_grid(self):
        grid = []
        self.assertEqual(append_column(grid, [1, 2]), 0)
        self.assertEqual(grid, [[1], [2]])


class TestTemplate(unittest.TestCase):
    def setUp(self):
        self.physical = _physical()
        self.calculated = calculate_physical_properties(1.5, 2.345, 100, 100)

    def test_report_column_order(self):
        values = build_report_column("S-1", _metrics(), self.physical, self.calculated)

        self.assertEqual(len(values), len(REPORT_ROWS))
        self.assertEqual(values[0], "2026-10-19")
        self.assertEqual(values[1], "S-1")
        self.assertEqual(values[2], 234.5)
        self.assertEqual(values[3], 1.5)
        self.assertEqual(values[4], 156.33)
        self.assertEqual(values[5:7], ["200°C", "5 bar"])
        self.assertEqual(values[7:11], [62, 95, "N/A", "N/A"])
        self.assertEqual(values[11:15], [100.0, 164.5, "N/A", "N/A"])
        self.assertEqual(values[15], "first batch")

    def test_round_trip(self):
        template = _xlsx_bytes(
            [["Item", "Sample A"], ["Name"], [], ["Weight", 210.1, "x"]] + [[label] for label in REPORT_ROWS[4:]],
            extra_sheet=[["keep", 1]],
        )
        output = append_to_template(template, "S-1", _metrics(), self.physical, self.calculated)

        grid = read_grid(output, "report.xlsx")
        expected = build_report_column("S-1", _metrics(), self.physical, self.calculated)
        self.assertEqual([row[3] for row in grid[:16]], expected)
        for row in grid[:16]:
            self.assertEqual(len(row), 4)
        self.assertEqual(grid[3][:3], ["Weight", 210.1, "x"])

    def test_other_sheets_and_rows_preserved(self):
        rows = [["h"]] * 16 + [["below", "the", "column", "stays"]]
        template = _xlsx_bytes(rows, extra_sheet=[["keep", 1]])
        output = append_to_template(template, "S-1", _metrics(), self.physical, self.calculated)

        wb = load_workbook(io.BytesIO(output))
        self.assertEqual(wb.sheetnames, ["Summary", "Notes"])
        self.assertEqual(wb["Notes"]["A1"].value, "keep")
        self.assertEqual(wb["Notes"]["B1"].value, 1)

        ws = wb["Summary"]
        self.assertEqual(ws["B1"].value, "2026-10-19")
        self.assertEqual(ws["B16"].value, "first batch")
        self.assertEqual([c.value for c in ws[17]], ["below", "the", "column", "stays"])

    def test_merged_title_row(self):
        wb = Workbook()
        ws = wb.active
        ws["A1"] = "HCS Summary"
        ws.merge_cells("A1:D1")
        for r in range(2, 17):
            ws.cell(row=r, column=1, value="label")
            ws.cell(row=r, column=2, value="prev")
        ws.cell(row=20, column=1, value="footer")
        ws.merge_cells("A20:D20")
        buf = io.BytesIO()
        wb.save(buf)

        output = append_to_template(buf.getvalue(), "S-1", _metrics(), self.physical, self.calculated)

        ws = load_workbook(io.BytesIO(output)).active
        self.assertEqual(ws["A1"].value, "HCS Summary")
        self.assertEqual(ws["C1"].value, "2026-10-19")
        self.assertEqual(ws["C2"].value, "S-1")
        self.assertEqual(ws["C16"].value, "first batch")
        merged = {rng.coord for rng in ws.merged_cells.ranges}
        self.assertNotIn("A1:D1", merged)
        self.assertIn("A20:D20", merged)

    def test_empty_template_sheet(self):
        output = append_to_template(_xlsx_bytes([]), "S-1", _metrics(), self.physical, self.calculated)
        ws = load_workbook(io.BytesIO(output)).active
        self.assertEqual(ws["A2"].value, "S-1")
        self.assertEqual(ws["A10"].value, "N/A")

    def test_bad_template_raises(self):
        with self.assertRaises(ParseError):
            append_to_template(b"garbage", "S-1", _metrics(), self.physical, self.calculated)


if __name__ == "__main__":
    unittest.main()
