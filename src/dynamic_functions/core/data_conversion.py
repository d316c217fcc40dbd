from typing import Any, Dict, List, Union
import json
import yaml
import toml

FUNCTIONS_KEY = "functions"


def load_functions_file(file_path: str) -> List[Dict[str, Any]]:
    """
    Load exported functions from a file, detecting its format (JSON, YAML, TOML).

    The file holds either a list of function objects or a mapping with a
    `functions` list (the only shape TOML can express).

    Args:
        file_path (str): Path to the export file.

    Returns:
        List[Dict[str, Any]]: Transfer-shaped function dictionaries.

    Raises:
        ValueError: If the file format or its structure is unsupported.
    """
    with open(file_path, "r", encoding="utf-8") as file:
        if file_path.endswith((".json", ".JSON")):
            data = json.load(file)
        elif file_path.endswith((".yaml", ".yml", ".YAML", ".YML")):
            data = yaml.safe_load(file)
        elif file_path.endswith((".toml", ".TOML")):
            data = toml.load(file)
        else:
            raise ValueError("Unsupported file format. Use JSON, YAML, or TOML.")

    return unwrap_functions(data)


def unwrap_functions(data: Any) -> List[Dict[str, Any]]:
    """Accept a list of functions or `{"functions": [...]}` and return the list."""
    if isinstance(data, dict):
        data = data.get(FUNCTIONS_KEY)
    if not isinstance(data, list):
        raise ValueError(
            f"Invalid functions format: expected a list or a '{FUNCTIONS_KEY}' table."
        )
    return data


def save_functions_file(file_path: str, functions: List[Dict[str, Any]]) -> None:
    """
    Save exported functions to a file, automatically determining the format.

    Raises:
        ValueError: If the file format is unsupported.
    """
    for ext, fmt in (
        ((".json", ".JSON"), "json"),
        ((".yaml", ".yml", ".YAML", ".YML"), "yaml"),
        ((".toml", ".TOML"), "toml"),
    ):
        if file_path.endswith(ext):
            break
    else:
        raise ValueError("Unsupported file format. Use JSON, YAML, or TOML.")

    with open(file_path, "w", encoding="utf-8") as file:
        file.write(convert_functions(functions, fmt))


def convert_functions(functions: Union[List[Dict[str, Any]], Dict[str, Any]], fmt: str) -> str:
    """
    Convert exported function(s) to a formatted string in JSON, YAML, or TOML.

    Args:
        functions: A single transfer-shaped function or a list of them.
        fmt (str): Desired format ("json", "yaml", "toml").

    Returns:
        str: The formatted string.

    Raises:
        ValueError: If the format is unsupported.
    """
    if fmt == "json":
        return json.dumps(functions, indent=4)

    if fmt == "yaml":
        return yaml.safe_dump(functions, default_flow_style=False, sort_keys=False)

    if fmt == "toml":
        if isinstance(functions, dict):
            functions = [functions]
        # TOML has no top-level arrays, store them as [[functions]] tables
        return toml.dumps({FUNCTIONS_KEY: functions})

    raise ValueError("Unsupported format. Choose 'json', 'yaml', or 'toml'.")
