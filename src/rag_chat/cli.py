from __future__ import annotations

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer

from rag_chat.blob_store import JsonFileBlobStore
from rag_chat.chat import RAGChatService
from rag_chat.config import Settings, load_settings
from rag_chat.embeddings_client import EmbeddingsClient
from rag_chat.errors import ChatRequestError, RagChatError
from rag_chat.http_client import HttpFetcher
from rag_chat.ingest import ingest_file, ingest_manual, ingest_website
from rag_chat.knowledge_base import KnowledgeBase
from rag_chat.llm_client import ChatClient
from rag_chat.logging_utils import setup_logging
from rag_chat.models import ChatMessage, Document, DocumentSource
from rag_chat.scoring import build_scorer

app = typer.Typer(add_completion=False, help="Knowledge-base chat assistant (RAG over Mistral)")

QUIT_COMMANDS = {"/quit", "/exit"}


def _init() -> Settings:
    try:
        settings = load_settings()
    except RagChatError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    setup_logging(settings.log_level)
    return settings


def _open_knowledge_base(settings: Settings) -> KnowledgeBase:
    try:
        embedder = EmbeddingsClient(settings) if settings.scorer == "embedding" else None
        kb = KnowledgeBase(
            JsonFileBlobStore(settings.store_file),
            build_scorer(settings, embedder),
            storage_key=settings.storage_key,
            min_similarity=settings.min_similarity,
            top_k=settings.top_k,
        )
        if settings.seed_defaults:
            kb.seed_default_knowledge()
    except RagChatError as e:
        _fail(str(e))
    return kb


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _print_document_line(doc: Document) -> None:
    created = doc.metadata.created_at.strftime("%Y-%m-%d %H:%M")
    typer.echo(f"{doc.id}  [{doc.metadata.source.value:<7}] {created}  {doc.title} ({len(doc.content)} chars)")


def _print_sources(sources: List[Document]) -> None:
    if not sources:
        return
    typer.echo("Sources:")
    for index, doc in enumerate(sources, start=1):
        suffix = f" <{doc.metadata.url}>" if doc.metadata.url else ""
        typer.echo(f"  [{index}] {doc.title}{suffix}")


@app.command()
def health() -> None:
    """Health check to verify config + logging works."""
    settings = _init()
    log = logging.getLogger("rag_chat.health")

    log.info("Health check OK.")
    log.info("Chat model: %s", settings.chat_model)
    log.info("Scorer: %s (min similarity %.2f, top-k %d)", settings.scorer, settings.min_similarity, settings.top_k)
    log.info("Store file: %s", settings.store_file)
    log.info("API key configured: %s", "yes" if settings.mistral_api_key else "no")

    typer.echo("OK")


@app.command()
def version() -> None:
    """Print version and exit."""
    typer.echo("rag-chat 0.1.0")


@app.command()
def add(
    title: str = typer.Option(..., "--title", help="Document title"),
    content: Optional[str] = typer.Option(None, "--content", help="Document text"),
    content_file: Optional[Path] = typer.Option(None, "--from-file", help="Read document text from this file"),
) -> None:
    """
    Add a document by hand.
    """
    settings = _init()
    if content is None and content_file is None:
        _fail("Provide --content or --from-file")
    if content is None:
        content = content_file.read_text(encoding="utf-8")

    kb = _open_knowledge_base(settings)
    try:
        doc_id = ingest_manual(kb, title, content)
    except RagChatError as e:
        _fail(str(e))
    typer.echo(doc_id)


@app.command("add-url")
def add_url(
    url: str = typer.Argument(..., help="Website to scrape into the knowledge base"),
    min_chars: int = typer.Option(100, "--min-chars", help="Minimum extracted characters to accept the page"),
) -> None:
    """
    Scrape a website and store its text.
    """
    settings = _init()
    kb = _open_knowledge_base(settings)

    with HttpFetcher(timeout_s=settings.http_timeout_s) as fetcher:
        try:
            doc_id = ingest_website(kb, fetcher, url, min_chars=min_chars)
        except RagChatError as e:
            _fail(f"Error adding website content: {e}")

    typer.secho("Website content added.", fg=typer.colors.GREEN)
    typer.echo(doc_id)


@app.command("add-file")
def add_file(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="File to upload"),
    mime_type: Optional[str] = typer.Option(None, "--mime-type", help="Override the detected MIME type"),
) -> None:
    """
    Upload a .txt, .json, .md, .pdf, .doc or .docx file.
    """
    settings = _init()
    kb = _open_knowledge_base(settings)
    try:
        doc_id = ingest_file(kb, path, mime_type=mime_type, max_bytes=settings.max_upload_bytes)
    except RagChatError as e:
        _fail(f"Error adding file content: {e}")

    typer.secho("File content added.", fg=typer.colors.GREEN)
    typer.echo(doc_id)


@app.command("list")
def list_documents(
    source: Optional[DocumentSource] = typer.Option(None, "--source", help="Only documents from this source"),
) -> None:
    """
    List stored documents.
    """
    settings = _init()
    kb = _open_knowledge_base(settings)

    documents = kb.get_by_source(source) if source else kb.get_all()
    if not documents:
        typer.echo("Knowledge base is empty.")
        return
    for doc in documents:
        _print_document_line(doc)


@app.command()
def show(doc_id: str = typer.Argument(..., help="Document id")) -> None:
    """
    Print one document.
    """
    settings = _init()
    kb = _open_knowledge_base(settings)
    try:
        doc = kb.require(doc_id)
    except RagChatError as e:
        _fail(str(e))

    typer.echo(f"Title:   {doc.title}")
    typer.echo(f"Source:  {doc.metadata.source.value}")
    typer.echo(f"Created: {doc.metadata.created_at.isoformat()}")
    if doc.metadata.url:
        typer.echo(f"URL:     {doc.metadata.url}")
    if doc.metadata.file_type:
        typer.echo(f"Type:    {doc.metadata.file_type}")
    typer.echo()
    typer.echo(doc.content)


@app.command()
def update(
    doc_id: str = typer.Argument(..., help="Document id"),
    title: Optional[str] = typer.Option(None, "--title", help="New title"),
    content: Optional[str] = typer.Option(None, "--content", help="New content"),
) -> None:
    """
    Change the title and/or content of a document.
    """
    settings = _init()
    if title is None and content is None:
        _fail("Nothing to update: pass --title and/or --content")

    kb = _open_knowledge_base(settings)
    try:
        updated = kb.update(doc_id, title=title, content=content)
    except RagChatError as e:
        _fail(str(e))
    if not updated:
        _fail(f"Document not found: {doc_id}")
    typer.echo("Updated.")


@app.command()
def remove(doc_id: str = typer.Argument(..., help="Document id")) -> None:
    """
    Delete a document.
    """
    settings = _init()
    kb = _open_knowledge_base(settings)
    if not kb.remove(doc_id):
        _fail(f"Document not found: {doc_id}")
    typer.echo("Document removed.")


@app.command()
def clear(yes: bool = typer.Option(False, "--yes", help="Do not ask for confirmation")) -> None:
    """
    Delete every document.
    """
    settings = _init()
    if not yes and not typer.confirm("Delete all documents?"):
        raise typer.Exit(code=0)

    kb = _open_knowledge_base(settings)
    removed = kb.count()
    kb.clear_all()
    typer.echo(f"Removed {removed} documents.")


@app.command()
def stats() -> None:
    """
    Document counts per source and total content size.
    """
    settings = _init()
    kb = _open_knowledge_base(settings)
    s = kb.statistics()

    typer.echo(f"Documents: {s.total_documents}")
    for source, count in s.by_source.items():
        typer.echo(f"  {source.value:<8} {count}")
    typer.echo(f"Content characters: {s.total_content_length}")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    top_k: Optional[int] = typer.Option(None, "--top-k", help="Number of results to return"),
) -> None:
    """
    Rank stored documents against a query.
    """
    settings = _init()
    kb = _open_knowledge_base(settings)

    try:
        results = kb.search(query, top_k=top_k)
    except RagChatError as e:
        _fail(f"Search failed: {e}")
    if not results:
        typer.echo("No results found.")
        return

    for rank, r in enumerate(results, start=1):
        typer.echo("=" * 80)
        typer.echo(f"Rank: {rank} | Similarity: {r.similarity:.4f}")
        typer.echo(f"Title: {r.document.title}")
        typer.echo(f"ID:    {r.document.id}")
        typer.echo()
        typer.echo(r.relevant_chunk)


def _chat_service(settings: Settings) -> RAGChatService:
    try:
        client = ChatClient(settings)
    except RagChatError as e:
        _fail(str(e))
    return RAGChatService(
        _open_knowledge_base(settings),
        client,
        top_k=settings.top_k,
        history_turns=settings.history_turns,
    )


@app.command()
def ask(question: str = typer.Argument(..., help="Question for the assistant")) -> None:
    """
    One-shot question answered with knowledge-base context.
    """
    settings = _init()
    service = _chat_service(settings)
    try:
        reply = service.chat(question)
    except ChatRequestError as e:
        _fail(e.user_message)

    typer.echo(reply.response)
    _print_sources(reply.sources)


@app.command()
def chat() -> None:
    """
    Interactive chat session. Type /quit to leave.
    """
    settings = _init()
    service = _chat_service(settings)
    history: List[ChatMessage] = []

    typer.echo("Ask anything about your knowledge base. Type /quit to leave.")
    while True:
        question = typer.prompt("you").strip()
        if question.lower() in QUIT_COMMANDS:
            break
        if not question:
            continue

        try:
            reply = service.chat(question, history)
        except ChatRequestError as e:
            typer.secho(e.user_message, fg=typer.colors.RED)
            continue

        typer.echo(f"assistant: {reply.response}")
        _print_sources(reply.sources)

        history.append(ChatMessage(role="user", content=question))
        history.append(ChatMessage(role="assistant", content=reply.response, sources=reply.sources))


if __name__ == "__main__":
    app()
