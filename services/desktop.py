"""Desktop actions for the report viewer: open a workbook at a row, native file dialogs.

On Windows these drive PowerShell (Excel COM automation, WinForms dialogs)
through a temporary .ps1 script. Elsewhere the system opener and tkinter
dialogs are used; the row selection is Windows-only.
"""
from __future__ import annotations

import logging
import os
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import List, Optional

from services.errors import DesktopActionError

logger = logging.getLogger(__name__)

POWERSHELL_TIMEOUT = 300  # Dialogs wait on the user

FILE_FILTERS = {
    "xlsx": ("Excel files (*.xlsx)|*.xlsx|All files (*.*)|*.*", [("Excel files", "*.xlsx")]),
    "db": ("DB files (*.db)|*.db|All files (*.*)|*.*", [("DB files", "*.db")]),
}
ALL_FILES = ("All files (*.*)|*.*", [])

# Hidden topmost form so dialogs open in front of the browser
_TOPMOST_FORM = [
    "Add-Type -AssemblyName System.Windows.Forms",
    "$form = New-Object System.Windows.Forms.Form",
    "$form.TopMost = $true",
    "$form.Size = New-Object System.Drawing.Size(0,0)",
    "$form.ShowInTaskbar = $false",
    "$form.Opacity = 0",
]


def _ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def is_windows() -> bool:
    return sys.platform.startswith("win")


def run_powershell(lines: List[str]) -> str:
    """Run a PowerShell script and return its trimmed stdout."""
    script = os.linesep.join(lines)
    fd, script_path = tempfile.mkstemp(prefix=f"matapp_{int(time.time() * 1000)}_", suffix=".ps1")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(script)
        result = subprocess.run(
            ["powershell", "-NoProfile", "-ExecutionPolicy", "Bypass", "-File", script_path],
            capture_output=True,
            text=True,
            timeout=POWERSHELL_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise DesktopActionError(f"PowerShell failed: {e}") from e
    finally:
        if os.path.exists(script_path):
            os.unlink(script_path)

    if result.returncode != 0:
        raise DesktopActionError(
            f"PowerShell exited with code {result.returncode}", stderr=result.stderr.strip()
        )
    return result.stdout.strip()


# =============================================================================
# OPEN WORKBOOK
# =============================================================================

def open_in_spreadsheet(file_path: str | Path, sheet_name: str, row: int) -> None:
    """Open the workbook in the desktop spreadsheet app, at `sheet_name`!A<row> where supported."""
    file_path = Path(file_path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Excel file not found: {file_path}")

    logger.info(f"[OPEN] {file_path} sheet={sheet_name} row={row}")

    if is_windows():
        run_powershell([
            "$excel = New-Object -ComObject Excel.Application",
            "$excel.Visible = $true",
            f"$wb = $excel.Workbooks.Open({_ps_quote(str(file_path.resolve()))})",
            f"try {{ $ws = $wb.Worksheets.Item({_ps_quote(sheet_name)}) }} "
            "catch { $ws = $wb.Worksheets.Item(1) }",
            "$ws.Activate()",
            f'$rng = $ws.Range("A{int(row)}")',
            "$rng.Select()",
        ])
        return

    opener = "open" if sys.platform == "darwin" else "xdg-open"
    try:
        subprocess.Popen([opener, str(file_path)], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except OSError as e:
        raise DesktopActionError(f"Could not launch {opener}: {e}") from e


# =============================================================================
# DIALOGS
# =============================================================================

def _tk_root():
    try:
        import tkinter
    except ImportError as e:
        raise DesktopActionError("No native dialog support (tkinter unavailable)") from e
    try:
        root = tkinter.Tk()
    except tkinter.TclError as e:
        raise DesktopActionError(f"Cannot open a dialog window: {e}") from e
    root.withdraw()
    root.attributes("-topmost", True)
    return root


def pick_file(ext: Optional[str] = None) -> str:
    """Show an open-file dialog; returns the chosen path or "" if cancelled."""
    ps_filter, tk_types = FILE_FILTERS.get((ext or "").lower(), ALL_FILES)

    if is_windows():
        return run_powershell(_TOPMOST_FORM + [
            "$ofd = New-Object System.Windows.Forms.OpenFileDialog",
            f"$ofd.Filter = {_ps_quote(ps_filter)}",
            "$ofd.Multiselect = $false",
            "if ($ofd.ShowDialog($form) -eq 'OK') { Write-Output $ofd.FileName }",
            "$form.Dispose()",
        ])

    from tkinter import filedialog

    root = _tk_root()
    try:
        return filedialog.askopenfilename(parent=root, filetypes=tk_types + [("All files", "*.*")]) or ""
    finally:
        root.destroy()


def pick_folder() -> str:
    """Show a folder dialog; returns the chosen path or "" if cancelled."""
    if is_windows():
        return run_powershell(_TOPMOST_FORM + [
            "$f = New-Object System.Windows.Forms.FolderBrowserDialog",
            "if ($f.ShowDialog($form) -eq 'OK') { Write-Output $f.SelectedPath }",
            "$form.Dispose()",
        ])

    from tkinter import filedialog

    root = _tk_root()
    try:
        return filedialog.askdirectory(parent=root) or ""
    finally:
        root.destroy()
