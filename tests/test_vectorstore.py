import json
import sys
import textwrap
from pathlib import Path

import pytest

from localrag_pro.index.chroma import TEXT_ONLY_FILE, ChromaVectorStore
from localrag_pro.index.factory import make_store
from localrag_pro.index.helper import HelperVectorStore
from localrag_pro.index.memory import MemoryVectorStore
from localrag_pro.index.schema import IndexedChunk
from localrag_pro.index.store import VectorStoreError

HELPER = textwrap.dedent(
    """
    import json, math, sys
    from pathlib import Path

    db = Path(sys.argv[1])
    op = sys.argv[2]

    def rows():
        if not db.exists():
            return []
        return [json.loads(l) for l in db.read_text(encoding="utf-8").splitlines() if l.strip()]

    def cos(a, b):
        na = math.sqrt(sum(x * x for x in a)) or 1.0
        nb = math.sqrt(sum(x * x for x in b)) or 1.0
        return sum(x * y for x, y in zip(a, b)) / (na * nb)

    if op == "upsert":
        rec = json.loads(sys.stdin.read())
        with db.open("a", encoding="utf-8") as f:
            f.write(json.dumps(rec) + "\\n")
        print(json.dumps({"ok": True}))
    elif op == "query":
        req = json.loads(sys.stdin.read())
        scored = [
            {"id": r["id"], "path": r["path"], "text": r["text"],
             "_distance": 1 - cos(req["embedding"], r["embedding"])}
            for r in rows() if r.get("embedding")
        ]
        scored.sort(key=lambda r: r["_distance"], reverse=True)  # worst first on purpose
        print(json.dumps({"results": scored[-req["topK"]:]}))
    elif op == "count":
        print(json.dumps({"count": len(rows())}))
    else:
        sys.stderr.write("unknown op " + op)
        sys.exit(3)
    """
)


def _chunk(path, text, emb):
    return IndexedChunk(path=path, text=text, embedding=emb)


@pytest.fixture
def helper_store(tmp_path: Path) -> HelperVectorStore:
    script = tmp_path / "helper.py"
    script.write_text(HELPER, encoding="utf-8")
    return HelperVectorStore([sys.executable, str(script), str(tmp_path / "db.jsonl")], timeout=30)


@pytest.fixture(params=["memory", "chroma", "helper"])
def any_store(request, tmp_path: Path, helper_store):
    if request.param == "memory":
        return MemoryVectorStore()
    if request.param == "chroma":
        vs = ChromaVectorStore(persist_dir=str(tmp_path / "chroma"))
        vs.reset()
        return vs
    return helper_store


def test_roundtrip_returns_own_chunk_first(any_store):
    a = _chunk("/d/a.txt", "alpha", [1.0, 0.0, 0.0])
    b = _chunk("/d/b.txt", "beta", [0.0, 1.0, 0.0])
    c = _chunk("/d/c.txt", "gamma", [0.6, 0.8, 0.0])
    for ch in (a, b, c):
        any_store.upsert(ch)

    hits = any_store.query(b.embedding, 2)
    assert len(hits) == 2
    assert hits[0].path == "/d/b.txt"
    assert hits[0].text == "beta"
    assert hits[0].score == pytest.approx(1.0, abs=1e-4)
    assert hits[1].path == "/d/c.txt"
    assert hits[0].score >= hits[1].score


def test_no_embedding_means_no_results(any_store):
    any_store.upsert(_chunk("/d/a.txt", "alpha", [1.0, 0.0]))
    assert any_store.query(None, 3) == []
    assert any_store.query([], 3) == []
    assert any_store.query([1.0, 0.0], 0) == []


def test_same_path_appends(any_store):
    any_store.upsert(_chunk("/d/a.txt", "v1", [1.0, 0.0]))
    any_store.upsert(_chunk("/d/a.txt", "v1", [1.0, 0.0]))
    assert any_store.count() == 2


def test_memory_store_keeps_text_only_chunks_out_of_search():
    vs = MemoryVectorStore()
    vs.upsert(_chunk("/d/a.txt", "text only", None))
    vs.upsert(_chunk("/d/b.txt", "short vec", [1.0]))
    vs.upsert(_chunk("/d/c.txt", "vec", [1.0, 0.0]))
    assert vs.count() == 3
    hits = vs.query([1.0, 0.0], 5)
    assert [h.path for h in hits] == ["/d/c.txt"]


def test_chroma_text_only_goes_to_sidecar(tmp_path: Path):
    vs = ChromaVectorStore(persist_dir=str(tmp_path / "chroma"))
    vs.reset()
    chunk = _chunk("/d/a.pdf", "[PDF] placeholder", None)
    vs.upsert(chunk)
    assert vs.count() == 1
    rows = (tmp_path / "chroma" / TEXT_ONLY_FILE).read_text(encoding="utf-8").splitlines()
    assert json.loads(rows[0]) == chunk.to_payload()
    assert vs.query([1.0, 0.0], 3) == []


def test_chroma_dimension_mismatch_is_store_error(tmp_path: Path):
    vs = ChromaVectorStore(persist_dir=str(tmp_path / "chroma"))
    vs.reset()
    vs.upsert(_chunk("/d/a.txt", "alpha", [1.0, 0.0, 0.0]))
    with pytest.raises(VectorStoreError):
        vs.upsert(_chunk("/d/b.txt", "beta", [1.0, 0.0]))


def test_helper_payload_matches_contract(tmp_path: Path, helper_store):
    chunk = _chunk("/d/a.txt", "alpha", [0.5, 0.5])
    helper_store.upsert(chunk)
    stored = json.loads((tmp_path / "db.jsonl").read_text(encoding="utf-8"))
    assert stored == {"id": chunk.id, "path": "/d/a.txt", "text": "alpha", "embedding": [0.5, 0.5]}


def test_helper_nonzero_exit_is_store_error(tmp_path: Path):
    script = tmp_path / "fail.py"
    script.write_text("import sys\nsys.stderr.write('boom')\nsys.exit(1)\n", encoding="utf-8")
    vs = HelperVectorStore([sys.executable, str(script)])
    with pytest.raises(VectorStoreError) as ei:
        vs.upsert(_chunk("/d/a.txt", "alpha", [1.0]))
    assert "boom" in str(ei.value)


def test_helper_garbage_reply_is_store_error(tmp_path: Path):
    script = tmp_path / "garbage.py"
    script.write_text("import sys\nsys.stdin.read()\nprint('not json')\n", encoding="utf-8")
    vs = HelperVectorStore([sys.executable, str(script)])
    with pytest.raises(VectorStoreError):
        vs.query([1.0], 3)


def test_helper_missing_executable_is_store_error(tmp_path: Path):
    vs = HelperVectorStore([str(tmp_path / "no-such-helper")])
    with pytest.raises(VectorStoreError):
        vs.upsert(_chunk("/d/a.txt", "alpha", [1.0]))


def test_make_store_backends(tmp_path: Path):
    assert isinstance(make_store({"backend": "memory"}), MemoryVectorStore)
    assert isinstance(
        make_store({"backend": "chroma", "persist_dir": str(tmp_path / "c")}), ChromaVectorStore
    )
    assert isinstance(make_store({"backend": "helper", "helper_command": ["x"]}), HelperVectorStore)
    with pytest.raises(RuntimeError):
        make_store({"backend": "lance"})


def test_chroma_text_only_write_failure_is_store_error(tmp_path: Path):
    vs = ChromaVectorStore(persist_dir=str(tmp_path / "chroma"))
    vs.reset()
    # a directory where the sidecar file should be makes the append fail
    (tmp_path / "chroma" / TEXT_ONLY_FILE).mkdir()
    with pytest.raises(VectorStoreError):
        vs.upsert(_chunk("/d/a.pdf", "[PDF] placeholder", None))
