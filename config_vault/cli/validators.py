"""Input validation for CLI arguments."""
import re
import sys
from pathlib import Path

from config_vault.vault.domains.models import NAMESPACE_PART_PATTERN

# The shared group label is only stored as metadata, never in a storage id.
SHARED_GROUP_PATTERN = r'^[a-zA-Z0-9_ -]+$'


def validate_namespace_part(label: str, value: str) -> None:
    """
    Validate a project, group, env or shared group name.

    Raises:
        SystemExit with code 2 if validation fails
    """
    if value is None:
        return

    if label == "shared group":
        if not re.match(SHARED_GROUP_PATTERN, value):
            print(f"Error: Invalid {label} '{value}'", file=sys.stderr)
            print("\nAllowed characters: letters, numbers, spaces, underscores (_), hyphens (-)", file=sys.stderr)
            sys.exit(2)
        return

    if not re.match(NAMESPACE_PART_PATTERN, value):
        print(f"Error: Invalid {label} '{value}'", file=sys.stderr)
        print("\nAllowed characters: letters and numbers", file=sys.stderr)
        print("Hyphens, underscores and spaces would make namespaces share secret ids.", file=sys.stderr)
        sys.exit(2)


def validate_input_file(path: str) -> Path:
    """
    Validate a JSON definition file exists.

    Returns:
        Resolved path

    Raises:
        SystemExit with code 2 if the file is missing
    """
    file_path = Path(path).expanduser().resolve()

    if not file_path.is_file():
        print(f"Error: Input file does not exist: {file_path}", file=sys.stderr)
        sys.exit(2)

    return file_path


def validate_output_file(path: str) -> Path:
    """Validate the output file can be created in an existing directory."""
    file_path = Path(path).expanduser().resolve()

    if not file_path.parent.is_dir():
        print(f"Error: Output directory does not exist: {file_path.parent}", file=sys.stderr)
        sys.exit(2)

    return file_path
