import pytest

from repo_context.config import FileContent, FileRecord, FrameworkID, OutlierMethod, Precision, RenderedArtifact
from repo_context.session import (
    FrameworkOverridden,
    Generated,
    PrecisionChanged,
    SelectionEdited,
    SessionPhase,
    SessionState,
    SourceLoaded,
    StatisticsToggled,
    generate,
    reduce,
)

NODE_LISTING = tuple(
    FileRecord(path=p, size=10) for p in ("package.json", "src/index.ts", "tests/app.test.ts", "README.md")
)


class FixedCounter:
    def count(self, text: str) -> int:
        return 3


def _loaded(files: tuple[FileRecord, ...] = NODE_LISTING) -> SessionState:
    return reduce(SessionState(), SourceLoaded(files=files))


@pytest.mark.unit
def test_initial_state() -> None:
    state = SessionState()

    assert state.phase == SessionPhase.IDLE
    assert state.precision == Precision.STANDARD
    assert state.effective_framework == FrameworkID.UNKNOWN
    assert state.selection == frozenset()


@pytest.mark.unit
def test_source_loaded_detects_and_filters() -> None:
    state = _loaded()

    assert state.detected_framework == FrameworkID.NODEJS
    assert state.phase == SessionPhase.FILTERED
    assert state.selection == {"src/index.ts", "package.json", "README.md"}
    assert [rec.path for rec in state.selected_records()] == ["package.json", "src/index.ts", "README.md"]


@pytest.mark.unit
def test_empty_listing_stays_listed() -> None:
    state = _loaded(())

    assert state.phase == SessionPhase.LISTED
    assert state.selection == frozenset()


@pytest.mark.unit
def test_framework_override_and_reset() -> None:
    state = reduce(_loaded(), FrameworkOverridden(framework=FrameworkID.PYTHON))

    assert state.effective_framework == FrameworkID.PYTHON
    assert state.selection == {"README.md"}

    state = reduce(state, FrameworkOverridden(framework=None))

    assert state.effective_framework == FrameworkID.NODEJS
    assert state.selection == {"src/index.ts", "package.json", "README.md"}


@pytest.mark.unit
def test_precision_change_recomputes_selection() -> None:
    state = reduce(_loaded(), PrecisionChanged(precision=Precision.FULL))

    assert state.selection == {p.path for p in NODE_LISTING}

    state = reduce(state, PrecisionChanged(precision=Precision.CORE))

    assert state.selection == {"src/index.ts"}


@pytest.mark.unit
def test_statistics_subtract_outliers() -> None:
    files = tuple(FileRecord(path=f"src/f{i}.txt", size=10) for i in range(20)) + (
        FileRecord(path="src/big.txt", size=2000),
    )
    state = _loaded(files)
    assert "src/big.txt" in state.selection

    state = reduce(state, StatisticsToggled(enabled=True, method=OutlierMethod.MEAN))

    assert state.outliers == {"src/big.txt"}
    assert "src/big.txt" not in state.selection
    assert len(state.selection) == 20

    state = reduce(state, StatisticsToggled(enabled=False))

    assert state.outlier_method == OutlierMethod.MEAN
    assert state.outliers == frozenset()
    assert "src/big.txt" in state.selection


@pytest.mark.unit
def test_new_source_resets_override_and_precision_but_keeps_statistics() -> None:
    state = _loaded()
    state = reduce(state, FrameworkOverridden(framework=FrameworkID.GO))
    state = reduce(state, PrecisionChanged(precision=Precision.CORE))
    state = reduce(state, StatisticsToggled(enabled=True, method=OutlierMethod.IQR))
    state = generate(state, [FileContent(path="a.txt", body="x")], FixedCounter())

    state = reduce(state, SourceLoaded(files=NODE_LISTING))

    assert state.manual_framework is None
    assert state.precision == Precision.STANDARD
    assert state.stats_enabled is True
    assert state.outlier_method == OutlierMethod.IQR
    assert state.artifact is None


@pytest.mark.unit
def test_selection_edited_drops_unknown_paths() -> None:
    state = reduce(_loaded(), SelectionEdited(paths=frozenset({"tests/app.test.ts", "nope.txt"})))

    assert state.selection == {"tests/app.test.ts"}
    assert state.phase == SessionPhase.FILTERED


@pytest.mark.unit
def test_generated_moves_to_rendered() -> None:
    artifact = RenderedArtifact(diagram="", text="Directory Structure:\n\n\n", token_count=None)

    state = reduce(_loaded(), Generated(artifact=artifact))

    assert state.phase == SessionPhase.RENDERED
    assert state.artifact == artifact


@pytest.mark.unit
def test_generate_renders_contents() -> None:
    state = generate(_loaded(), [FileContent(path="README.md", body="# hi")], FixedCounter())

    assert state.phase == SessionPhase.RENDERED
    assert state.artifact.paths == ("README.md",)
    assert state.artifact.token_count == 3


@pytest.mark.unit
def test_configuration_after_render_goes_back_to_filtered() -> None:
    state = generate(_loaded(), [FileContent(path="README.md", body="# hi")], FixedCounter())

    state = reduce(state, PrecisionChanged(precision=Precision.FULL))

    assert state.phase == SessionPhase.FILTERED


@pytest.mark.unit
def test_reduce_leaves_previous_state_untouched() -> None:
    before = _loaded()

    reduce(before, PrecisionChanged(precision=Precision.CORE))

    assert before.precision == Precision.STANDARD
    assert before.selection == {"src/index.ts", "package.json", "README.md"}


@pytest.mark.unit
def test_reduce_rejects_unknown_events() -> None:
    with pytest.raises(TypeError):
        reduce(SessionState(), object())  # type: ignore[arg-type]
