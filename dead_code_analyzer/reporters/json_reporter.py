"""JSON export of the finished entity tables and buckets."""
import json
from pathlib import Path

from ..analyzer.project_analyzer import AnalysisResult
from ..config import __version__


def write_json_report(result: AnalysisResult, output_path: str | Path) -> Path:
    """Write ``result.to_dict()`` (plus the tool version) to ``output_path``.

    Returns:
        The path written
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    data = {'version': __version__, **result.to_dict()}
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return output_path
