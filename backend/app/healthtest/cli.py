from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich import print

from healthtest.logging_config import setup_logging
from healthtest.models.schemas import RequirementSource
from healthtest.services.ai.errors import GenerationError
from healthtest.services.ai.gateway import CompletionGateway
from healthtest.services.generation import analyze_requirements
from healthtest.services.orchestrator_service import GenerationOrchestrator

app = typer.Typer(add_completion=False, help="HealthTest CLI")


# ============================================================
# Output helpers
# ============================================================
def _info(msg: str) -> None:
    print(f"[cyan][HT][/cyan] {msg}")


def _ok(msg: str) -> None:
    print(f"[green][HT][OK][/green] {msg}")


def _fail(msg: str, code: int = 1) -> NoReturn:
    print(f"[red][HT][FAIL][/red] {msg}")
    raise typer.Exit(code)


def _read_document(path: Path) -> str:
    if not path.exists():
        _fail(f"File not found: {path}")
    return path.read_text(encoding="utf-8")


def _write_json(data, out: Optional[Path]) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if out is None:
        typer.echo(text)
    else:
        out.write_text(text, encoding="utf-8")
        _ok(f"Written {out}")


# ============================================================
# Commands
# ============================================================
@app.command()
def serve(host: str = "127.0.0.1", port: int = 8000):
    """Run FastAPI server."""
    import uvicorn

    uvicorn.run("healthtest.main:app", host=host, port=port)


@app.command()
def generate(
    document: Path = typer.Argument(..., help="Plain-text requirements or API specification"),
    source: RequirementSource = typer.Option(RequirementSource.DOCUMENT_UPLOAD, help="Document provenance"),
    out: Optional[Path] = typer.Option(None, help="Output JSON file (stdout when omitted)"),
):
    """Extract requirements and generate linked test cases."""
    setup_logging()
    text = _read_document(document)

    def on_progress(p):
        _info(f"[{p.step}/4] {p.message} ({p.progress}%)")

    orchestrator = GenerationOrchestrator(CompletionGateway.from_settings(), on_progress=on_progress)
    result = asyncio.run(orchestrator.run(text, source))
    if not result.ok:
        _fail(f"Failed to generate test cases. {result.error}")

    _write_json(
        {
            "requirements": [r.model_dump(by_alias=True, mode="json") for r in result.requirements],
            "testCases": [tc.model_dump(by_alias=True, mode="json") for tc in result.test_cases],
            "traceability": result.traceability.stats.model_dump(mode="json") if result.traceability else None,
        },
        out,
    )
    _ok(f"{len(result.requirements)} requirement(s), {len(result.test_cases)} test case(s)")


@app.command()
def analyze(document: Path = typer.Argument(..., help="Plain-text requirements document")):
    """Summarize a requirements document before generation."""
    setup_logging()
    text = _read_document(document)
    try:
        analysis = asyncio.run(analyze_requirements(CompletionGateway.from_settings(), text))
    except GenerationError as e:
        _fail(e.message)
    _write_json(analysis.model_dump(by_alias=True, mode="json"), None)


def main():
    app()


if __name__ == "__main__":
    main()
