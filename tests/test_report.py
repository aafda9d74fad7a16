import io
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path

from collective_average import report
from collective_average.consistency import CheckOutcome, ConsistencyReport
from collective_average.group import Group
from collective_average.harness import CostBreakdown, TimingSample
from collective_average.pipeline import PipelineResult


def _samples():
    return [
        TimingSample("MPI_Bcast", 10, 4, 100, 12.5),
        TimingSample("ProgramaCompleto", 1000, 4, 100, 250.0),
    ]


class TableTests(unittest.TestCase):
    def test_frame_columns(self) -> None:
        frame = report.samples_frame(_samples())
        self.assertEqual(list(frame.columns), report.RESULT_COLUMNS)
        self.assertEqual(len(frame), 2)

    def test_write_and_read_back(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = report.write_results(_samples(), Path(tmp) / "out" / report.results_filename(4))
            self.assertEqual(path.name, "benchmark_results_4procs.csv")
            lines = path.read_text().splitlines()
            self.assertEqual(lines[0], "Operation,PayloadSize,GroupSize,AverageTimeMicroseconds")
            self.assertTrue(lines[2].startswith("ProgramaCompleto,1000,4,"))
            frame = report.read_results(path)
            self.assertAlmostEqual(frame["AverageTimeMicroseconds"][0], 12.5)

    def test_strong_scaling_frame(self) -> None:
        samples = [
            TimingSample("StrongScaling", 1000, 1, 1, 100.0, 2048),
            TimingSample("StrongScaling", 500, 2, 1, 50.0, 2048),
            TimingSample("StrongScaling", 250, 4, 1, 50.0, 2048),
        ]
        frame = report.scaling_frame(samples)
        self.assertEqual(list(frame["Speedup"]), [1.0, 2.0, 2.0])
        self.assertEqual(list(frame["Efficiency"]), [1.0, 1.0, 0.5])

    def test_weak_scaling_frame(self) -> None:
        samples = [
            TimingSample("WeakScaling", 1000, 1, 1, 100.0, 2048),
            TimingSample("WeakScaling", 1000, 2, 1, 125.0, 2048),
        ]
        frame = report.scaling_frame(samples)
        self.assertEqual(list(frame["Efficiency"]), [1.0, 0.8])

    def test_empty_scaling(self) -> None:
        self.assertIn("(no samples)", report.format_scaling([], "STRONG SCALING"))


class TextTests(unittest.TestCase):
    def setUp(self) -> None:
        self.result = PipelineResult(
            n=1000,
            group_size=4,
            local_contribution=50123.456,
            aggregate=200000.0,
            final_statistic=50.0,
            preview=(1.0, 2.0, 3.0, 4.0, 5.0),
            generation_us=10.0,
            reduce_us=5.0,
            broadcast_us=2.0,
        )

    def test_pipeline_summary(self) -> None:
        text = report.format_pipeline_summary(self.result)
        self.assertIn("Total number of values: 4000", text)
        self.assertIn("Average: 50.0000", text)

    def test_preview(self) -> None:
        text = report.format_preview(2, self.result)
        self.assertIn("Process 2:", text)
        self.assertIn("1.00, 2.00, 3.00, 4.00, 5.00, ... (995 more)", text)
        self.assertIn("Partial sum: 50123.46", text)

    def test_samples_and_costs(self) -> None:
        self.assertIn("MPI_Bcast with 10 elements: 12.50 us", report.format_samples(_samples()))
        costs = report.format_costs([CostBreakdown(100, 4, 3.0, 1.0)])
        self.assertIn("N=100 | compute: 3.00 us (75.0%) | communicate: 1.00 us (25.0%)", costs)

    def test_consistency_text(self) -> None:
        failed = ConsistencyReport(4, 3, [CheckOutcome("reduce", False, detail="sum 9")])
        text = report.format_consistency(failed)
        self.assertIn("[FAIL] reduce: sum 9", text)
        self.assertIn("Processes that passed: 3/4", text)
        self.assertIn("ALL CHECKS PASSED", report.format_consistency(ConsistencyReport(1, 1, [])))

    def test_system_info(self) -> None:
        text = report.format_system_info({"processes": 4, "cores": 8, "page_size": 4096})
        self.assertIn("Page size: 4096 bytes", text)

    def test_ordered_print(self) -> None:
        group = Group.from_comm()
        out = io.StringIO()
        with redirect_stdout(out):
            report.ordered_print(group, f"rank {group.rank}")
        self.assertEqual(out.getvalue(), f"rank {group.rank}\n")


if __name__ == "__main__":
    unittest.main()
