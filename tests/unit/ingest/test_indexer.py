"""Tests for per-file indexing, de-indexing and file collection."""

from __future__ import annotations

import pytest

from sprig.db.repository import IndexRepository
from sprig.db.schema import open_index
from sprig.db.vectors import bytes_to_vector
from sprig.errors import EmbeddingProviderError, SourceNotFoundError
from sprig.ingest.indexer import (
    MAX_BATCH_SIZE,
    collect_indexable_files,
    deindex_file,
    index_file,
)
from sprig.ingest.markdown import chunk_document

ALICE_PATH = "characters/alice/profile.md"
ALICE = (
    "---\ntype: character\nname: Alice\n---\n\n"
    "## Background\nGrew up by the sea.\n\n"
    "## Goals\nFind her brother.\n"
)


@pytest.fixture
def read_repo(project):
    """Fresh connection per read so results reflect committed state only."""
    conns = []

    def _open() -> IndexRepository:
        conn = open_index(project)
        conns.append(conn)
        return IndexRepository(conn)

    yield _open
    for conn in conns:
        conn.close()


# ------------------------------------------------------------------
# index_file
# ------------------------------------------------------------------


def test_index_new_file(project, write_doc, fake_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    result = index_file(project, ALICE_PATH, fake_client)

    chunks = chunk_document(ALICE, ALICE_PATH)
    assert result.chunks_total == 3
    assert result.chunks_embedded == 3
    assert result.tokens_used == sum(c.token_count for c in chunks)

    repo = read_repo()
    f = repo.get_indexed_file(ALICE_PATH)
    assert f.chunk_count == 3
    assert f.file_type == "character"
    stored = repo.get_all_chunks_for_search()
    assert [c.chunk_index for c in stored] == [0, 1, 2]
    assert all(c.metadata.entity_type == "character" for c in stored)
    assert all(c.metadata.entity_name == "alice" for c in stored)


def test_ledger_records_tokens_and_cost(project, write_doc, fake_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    result = index_file(project, ALICE_PATH, fake_client)

    [entry] = read_repo().list_embedding_log()
    assert entry.tokens_used == result.tokens_used
    assert entry.chunks_embedded == 3
    assert entry.cost_usd == pytest.approx(result.tokens_used / 1_000_000 * 0.06)


def test_unchanged_file_is_a_no_op(project, write_doc, fake_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    index_file(project, ALICE_PATH, fake_client)
    before = read_repo().get_all_chunks_for_search()
    calls = len(fake_client.batches)

    result = index_file(project, ALICE_PATH, fake_client)

    assert (result.chunks_total, result.chunks_embedded, result.tokens_used) == (0, 0, 0)
    assert result.unchanged is True
    assert len(fake_client.batches) == calls
    assert read_repo().get_all_chunks_for_search() == before
    assert len(read_repo().list_embedding_log()) == 1


def test_editing_one_section_embeds_only_that_section(project, write_doc, fake_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    index_file(project, ALICE_PATH, fake_client)
    old = {c.chunk_index: c.embedding for c in read_repo().get_all_chunks_for_search()}

    write_doc(ALICE_PATH, ALICE.replace("Find her brother.", "Save the lighthouse."))
    fake_client.batches.clear()
    result = index_file(project, ALICE_PATH, fake_client)

    assert result.chunks_total == 3
    assert result.chunks_embedded == 1
    assert fake_client.embedded_texts == ["## Goals\n\nSave the lighthouse."]

    new = {c.chunk_index: c.embedding for c in read_repo().get_all_chunks_for_search()}
    assert new[0] == old[0]
    assert new[1] == old[1]
    assert new[2] != old[2]

    log = read_repo().list_embedding_log()
    assert len(log) == 2
    assert log[-1].chunks_embedded == 1


def test_stored_hash_matches_stored_chunks(project, write_doc, fake_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    index_file(project, ALICE_PATH, fake_client)
    edited = ALICE + "\n## Fears\nDeep water.\n"
    write_doc(ALICE_PATH, edited)
    index_file(project, ALICE_PATH, fake_client)

    repo = read_repo()
    expected = chunk_document(edited, ALICE_PATH)
    assert repo.get_chunk_hashes(ALICE_PATH) == {c.chunk_index: c.content_hash for c in expected}
    assert repo.get_indexed_file(ALICE_PATH).chunk_count == len(expected)


def test_shrinking_document_removes_trailing_chunks(project, write_doc, fake_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    index_file(project, ALICE_PATH, fake_client)
    write_doc(ALICE_PATH, ALICE.split("## Goals")[0])
    index_file(project, ALICE_PATH, fake_client)
    assert read_repo().count_chunks(ALICE_PATH) == 2


def test_missing_file_raises(project, fake_client):
    with pytest.raises(SourceNotFoundError, match="File not found: notes/nope.md"):
        index_file(project, "notes/nope.md", fake_client)


def test_empty_file_leaves_index_untouched(project, write_doc, fake_client, read_repo):
    write_doc("notes/empty.md", "   \n")
    result = index_file(project, "notes/empty.md", fake_client)
    assert result.chunks_total == 0
    assert result.unchanged is False
    assert read_repo().get_indexed_file("notes/empty.md") is None
    assert fake_client.batches == []


def test_provider_failure_keeps_previous_state(project, write_doc, fake_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    index_file(project, ALICE_PATH, fake_client)
    before_hash = read_repo().get_file_hash(ALICE_PATH)
    before_chunks = read_repo().get_all_chunks_for_search()

    write_doc(ALICE_PATH, ALICE.replace("sea", "mountains"))
    fake_client.fail = True
    with pytest.raises(EmbeddingProviderError):
        index_file(project, ALICE_PATH, fake_client)

    repo = read_repo()
    assert repo.get_file_hash(ALICE_PATH) == before_hash
    assert repo.get_all_chunks_for_search() == before_chunks
    assert len(repo.list_embedding_log()) == 1


def test_failed_file_is_retried_on_next_call(project, write_doc, fake_client):
    write_doc(ALICE_PATH, ALICE)
    fake_client.fail = True
    with pytest.raises(EmbeddingProviderError):
        index_file(project, ALICE_PATH, fake_client)
    fake_client.fail = False
    assert index_file(project, ALICE_PATH, fake_client).chunks_embedded == 3


def test_large_documents_embed_in_batches(project, write_doc, fake_client):
    sections = "\n".join(f"## Part {i}\nBody {i}.\n" for i in range(MAX_BATCH_SIZE + 2))
    write_doc("notes/long.md", sections)
    result = index_file(project, "notes/long.md", fake_client)
    assert result.chunks_embedded == MAX_BATCH_SIZE + 2
    assert [len(b) for b in fake_client.batches] == [MAX_BATCH_SIZE, 2]


def test_malformed_stored_vector_is_re_embedded(project, write_doc, fake_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    index_file(project, ALICE_PATH, fake_client)

    conn = open_index(project)
    conn.execute(
        "UPDATE chunks SET embedding = x'000000' WHERE file_path = ? AND chunk_index = 1",
        (ALICE_PATH,),
    )
    conn.commit()
    conn.close()

    write_doc(ALICE_PATH, ALICE.replace("Find her brother.", "Sail north."))
    fake_client.batches.clear()
    result = index_file(project, ALICE_PATH, fake_client)

    assert result.chunks_embedded == 2
    stored = {c.chunk_index: c for c in read_repo().get_all_chunks_for_search()}
    assert len(bytes_to_vector(stored[1].embedding)) == fake_client.dimensions


# ------------------------------------------------------------------
# Embedding model and vector width
# ------------------------------------------------------------------


def _stored_widths(read_repo) -> set[int]:
    return {len(bytes_to_vector(c.embedding)) for c in read_repo().get_all_chunks_for_search()}


def test_index_records_embedding_model(project, write_doc, fake_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    index_file(project, ALICE_PATH, fake_client)
    assert read_repo().get_indexed_file(ALICE_PATH).embedding_model == fake_client.model


def test_model_change_re_embeds_unchanged_file(project, write_doc, fake_client, make_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    index_file(project, ALICE_PATH, fake_client)

    smaller = make_client(dims=4)
    result = index_file(project, ALICE_PATH, smaller)

    assert result.chunks_embedded == 3
    assert _stored_widths(read_repo) == {4}
    assert read_repo().get_indexed_file(ALICE_PATH).embedding_model == smaller.model


def test_edit_after_model_change_keeps_one_width(project, write_doc, fake_client, make_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    index_file(project, ALICE_PATH, fake_client)

    write_doc(ALICE_PATH, ALICE.replace("Find her brother.", "Sail north."))
    smaller = make_client(dims=4)
    result = index_file(project, ALICE_PATH, smaller)

    assert result.chunks_embedded == 3
    assert _stored_widths(read_repo) == {smaller.dimensions}


def test_stored_vector_of_wrong_width_is_re_embedded(project, write_doc, fake_client, make_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    index_file(project, ALICE_PATH, fake_client)

    write_doc(ALICE_PATH, ALICE.replace("Find her brother.", "Sail north."))
    same_name = make_client(dims=4, model=fake_client.model)
    result = index_file(project, ALICE_PATH, same_name)

    assert result.chunks_embedded == 3
    assert _stored_widths(read_repo) == {4}


def test_provider_vector_of_wrong_width_rejected(project, write_doc, fake_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    background = chunk_document(ALICE, ALICE_PATH)[1]
    fake_client.overrides[background.content] = [1.0, 0.0, 0.0]

    with pytest.raises(EmbeddingProviderError, match="3-dimension vector"):
        index_file(project, ALICE_PATH, fake_client)

    repo = read_repo()
    assert repo.get_indexed_file(ALICE_PATH) is None
    assert repo.count_chunks() == 0


# ------------------------------------------------------------------
# deindex_file
# ------------------------------------------------------------------


def test_deindex_removes_everything_for_path(project, write_doc, fake_client, read_repo):
    write_doc(ALICE_PATH, ALICE)
    write_doc("notes/keep.md", "Keep me.")
    index_file(project, ALICE_PATH, fake_client)
    index_file(project, "notes/keep.md", fake_client)

    deindex_file(project, ALICE_PATH)

    repo = read_repo()
    assert repo.get_indexed_file(ALICE_PATH) is None
    assert {c.file_path for c in repo.get_all_chunks_for_search()} == {"notes/keep.md"}
    count = repo._conn.execute("SELECT COUNT(*) FROM chunk_metadata").fetchone()[0]
    assert count == 1


def test_deindex_unknown_path_is_a_no_op(project):
    deindex_file(project, "never/indexed.md")


# ------------------------------------------------------------------
# collect_indexable_files
# ------------------------------------------------------------------


def test_collect_indexable_files(project, write_doc):
    write_doc("characters/alice/profile.md", "x")
    write_doc("notes/idea.md", "x")
    write_doc("notes/data.json", "{}")
    write_doc(".hidden/secret.md", "x")
    write_doc("notes/.draft.md", "x")
    write_doc("exports/book.md", "x")
    write_doc("node_modules/pkg/readme.md", "x")
    write_doc(".sprig/notes.md", "x")

    assert collect_indexable_files(project) == [
        "characters/alice/profile.md",
        "notes/idea.md",
    ]


def test_collect_indexable_files_empty_project(project):
    assert collect_indexable_files(project) == []
