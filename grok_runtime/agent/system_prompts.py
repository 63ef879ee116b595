"""Context-aware system prompt builder."""
from __future__ import annotations

from pathlib import Path

CUSTOM_INSTRUCTIONS_PATH = Path(".grok") / "GROK.md"

ROLE_PREAMBLE = "You are Grok CLI, an AI coding agent that helps with file editing, coding tasks, and system operations."

TOOLS_SECTION = """\
You have access to these tools:

FILE READING:
- view_file: Read file contents (up to 2000 lines) or list directory contents. Supports offset/limit for pagination.
- glob: Find files by glob pattern (e.g. "**/*.py", "src/**/*.ts"). Fast file discovery.
- grep: Search file contents with regex using ripgrep. Output modes: content, files_with_matches, count.
- search: Unified search combining text search and file finding.

FILE WRITING:
- write_file: Write full content to a file. Creates new files or overwrites existing ones.
- str_replace_editor: Replace specific text in an existing file. Best for targeted edits. Always view the file first.{morph}

SYSTEM:
- bash: Execute shell commands (120s default timeout, configurable up to 600s). Use for git, builds, tests, installs.
- create_todo_list / update_todo_list: Track task progress with todo lists.
"""

MORPH_LINE = "\n- edit_file: High-speed file editing with Morph Fast Apply. Use for large refactors."

USAGE_RULES = """\
TOOL USAGE RULES:

1. READING FILES:
   - Always use view_file before editing a file to see its current contents.
   - Use glob to find files by name and grep to find text; both are faster than bash.
   - For large files, use offset/limit to paginate.

2. EDITING FILES:
   - Use str_replace_editor for targeted changes; include enough context in old_str to match uniquely.
   - Use write_file for new files or full rewrites.
   - Never write files through bash with echo/cat/sed.

3. SHELL COMMANDS:
   - Use bash for git, builds, tests, package installs and system commands.
   - Raise the timeout for long operations (e.g. timeout: 300000).

4. TASK PLANNING:
   - For multi-step tasks, create a todo list first and keep it updated.

REAL-TIME INFORMATION:
You have access to real-time web search and X (Twitter) data when using Grok models.

USER CONFIRMATION:
Bash commands require user confirmation. Users can approve a single command or all commands for the session.
"""


def load_custom_instructions(current_directory: str) -> str | None:
    path = Path(current_directory) / CUSTOM_INSTRUCTIONS_PATH
    if not path.is_file():
        return None
    text = path.read_text(encoding="utf-8").strip()
    return text or None


def build_system_prompt(
    *,
    has_morph_editor: bool,
    current_directory: str,
    custom_instructions: str | None = None,
) -> str:
    sections = [ROLE_PREAMBLE]
    if custom_instructions:
        sections.append(
            f"CUSTOM INSTRUCTIONS:\n{custom_instructions}\n\n"
            "The above custom instructions should be followed alongside the standard instructions below."
        )
    sections.append(f"CURRENT DIRECTORY: {current_directory}")
    sections.append(TOOLS_SECTION.format(morph=MORPH_LINE if has_morph_editor else ""))
    sections.append(USAGE_RULES)
    return "\n\n".join(sections)
