import io
import runpy
import sys
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from collective_average.group import Group

SCRIPT = Path(__file__).resolve().parent.parent / "mpi-examples" / "mpi_average.py"


class ExampleScriptTests(unittest.TestCase):
    def test_average_script(self) -> None:
        group = Group.from_comm()
        out = io.StringIO()
        with mock.patch.object(sys, "argv", [str(SCRIPT), "500"]), redirect_stdout(out):
            runpy.run_path(str(SCRIPT), run_name="__main__")
        text = out.getvalue()
        self.assertIn(f"Rank {group.rank}: received N = 500", text)
        self.assertIn(f"Rank {group.rank}: average = ", text)
        if group.is_coordinator:
            self.assertIn(f"over {500 * group.size} values", text)


if __name__ == "__main__":
    unittest.main()
