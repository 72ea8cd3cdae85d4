import subprocess
import sys
from pathlib import Path


def run(port: int = 8501) -> subprocess.Popen:
    main_path = Path(__file__).resolve().parent / "main.py"
    ui_cmd = [
        sys.executable,
        "-m", "streamlit",
        "run",
        str(main_path),
        "--server.port", str(port),
    ]

    print(f"Starting UI on http://localhost:{port}")
    return subprocess.Popen(ui_cmd)
