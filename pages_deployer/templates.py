# templates.py
import json
from datetime import datetime, timezone
from typing import Dict, List, Optional

LICENSE_TEMPLATE = """MIT License

Copyright (c) {year} {holder}

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""

GITIGNORE = "\n".join([
    "node_modules/",
    ".env",
    ".env.local",
    ".DS_Store",
    ".vscode/",
    ".idea/",
    "*.log",
    "temp/",
    "",
])


def render_license(holder: str, year: Optional[int] = None) -> str:
    return LICENSE_TEMPLATE.format(year=year or datetime.now(timezone.utc).year, holder=holder)


def render_gitignore() -> str:
    return GITIGNORE


def render_manifest(slug: str, brief: str, email: str) -> str:
    manifest = {
        "name": slug,
        "version": "1.0.0",
        "description": brief,
        "main": "index.html",
        "scripts": {"start": "python -m http.server 8000"},
        "author": email,
        "license": "MIT",
    }
    return json.dumps(manifest, indent=2) + "\n"


def render_readme(task: str, slug: str, brief: str, checks: List[str], clone_url: str, pages_url: str, round_index: int, extra_files: Optional[List[str]] = None) -> str:
    checklist = "\n".join(f"- [ ] {c}" for c in checks) or "_No checks supplied._"
    heading = "Requirements Checklist" if round_index == 1 else f"Updated Requirements Checklist (Round {round_index})"
    files = [
        "- `index.html` - Complete application with inline CSS and JavaScript",
        "- `LICENSE` - MIT License",
        "- `README.md` - This file",
    ]
    for name in extra_files or []:
        files.append(f"- `{name}` - Data file referenced by the application")
    sections = [
        f"# {task}",
        "",
        "## Overview",
        brief,
        "",
        f"## {heading}",
        checklist,
        "",
        "## Setup",
        "1. Clone this repository:",
        "   ```bash",
        f"   git clone {clone_url}",
        f"   cd {slug}",
        "   ```",
        "2. Open `index.html` in your web browser, or serve the folder with `python -m http.server 8000`.",
        "",
        "## Usage",
        f"Live demo: {pages_url}",
        "",
        "All functionality is contained in the single HTML file.",
        "",
        "## File Structure",
        *files,
        "",
        "## License",
        "MIT License - see LICENSE for full details.",
        "",
        "---",
        "*Generated automatically*" if round_index == 1 else f"*Generated and revised automatically (Round {round_index})*",
        "",
    ]
    return "\n".join(sections)


SUPPORTING_FILES = ("LICENSE", "README.md", ".gitignore", "package.json")


def supporting_files(*, task: str, slug: str, brief: str, checks: List[str], email: str, clone_url: str, pages_url: str, round_index: int, extra_files: Optional[List[str]] = None) -> Dict[str, str]:
    """Every file written next to ``index.html`` on each publish."""
    return {
        "LICENSE": render_license(email),
        "README.md": render_readme(task, slug, brief, checks, clone_url, pages_url, round_index, extra_files),
        ".gitignore": render_gitignore(),
        "package.json": render_manifest(slug, brief, email),
    }
