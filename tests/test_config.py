import unittest
from pathlib import Path

from collective_average.config import RunConfig
from collective_average.errors import InvalidParameter


class RunConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = RunConfig.from_env({})
        self.assertIsNone(config.values)
        self.assertEqual(config.iterations, 100)
        self.assertEqual(config.timeout, 300.0)
        self.assertEqual(config.output_dir, Path("benchmarks"))
        self.assertEqual(config.log_level, "WARNING")

    def test_environment(self) -> None:
        config = RunConfig.from_env(
            {
                "COLLAVG_VALUES": "1000",
                "COLLAVG_ITERATIONS": "10",
                "COLLAVG_TIMEOUT": "60",
                "COLLAVG_OUTPUT_DIR": "results",
                "COLLAVG_LOG_LEVEL": "debug",
                "UNRELATED": "x",
            }
        )
        self.assertEqual(config.values, 1000)
        self.assertEqual(config.iterations, 10)
        self.assertEqual(config.timeout, 60.0)
        self.assertEqual(config.output_dir, Path("results"))
        self.assertEqual(config.log_level, "DEBUG")

    def test_flags_override_environment(self) -> None:
        config = RunConfig.from_env({"COLLAVG_ITERATIONS": "10"}).merged(iterations=5, values=None)
        self.assertEqual(config.iterations, 5)
        self.assertIsNone(config.values)

    def test_malformed_number(self) -> None:
        with self.assertRaises(InvalidParameter) as ctx:
            RunConfig.from_env({"COLLAVG_ITERATIONS": "many"})
        self.assertIn("COLLAVG_ITERATIONS", str(ctx.exception))

    def test_unknown_log_level(self) -> None:
        with self.assertRaises(InvalidParameter):
            RunConfig.from_env({"COLLAVG_LOG_LEVEL": "LOUD"})


if __name__ == "__main__":
    unittest.main()
