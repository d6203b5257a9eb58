from subprocess import run
import os
import sys
from pathlib import Path

# Use the same interpreter that is running this script
PYTHON = sys.executable

# Paths
ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"

# Each command is (argv_list, cwd)
COMMANDS = [
    ([PYTHON, "-m", "payroll_audit.run"], ROOT),
    ([PYTHON, "-m", "payroll_indicators.run"], ROOT),
    ([PYTHON, "-m", "reporting.run"], ROOT),
]


def main() -> None:
    print(f"Using Python interpreter: {PYTHON}")
    env = {**os.environ, "PYTHONPATH": os.pathsep.join(filter(None, [str(SRC), os.environ.get("PYTHONPATH")]))}
    for cmd, cwd in COMMANDS:
        print(f"\n▶ Running: {' '.join(str(c) for c in cmd)}")
        print(f"   in cwd: {cwd}")
        result = run(cmd, cwd=str(cwd), env=env)
        if result.returncode != 0:
            print("✗ Command failed, stopping pipeline.")
            sys.exit(result.returncode)

    print("\n✅ All payroll audit checks and reports completed successfully.")


if __name__ == "__main__":
    main()
