"""CLI for uploading images and publishing notes to R2."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger

from core.exceptions import ConfigurationError, R2UploaderError
from core.logging_config import setup_logging
from core.media import mime_type_for_name
from core.publish.factory import create_publisher, create_uploader, create_vault
from core.publish.publisher import CorpusResult, PublishResult
from core.settings import Settings

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Upload note images to Cloudflare R2 and rewrite the links")
    parser.add_argument("--config", type=Path, help="YAML configuration file (default: config/default.yaml)")
    parser.add_argument("--vault", type=Path, help="Vault root directory (overrides vault.root)")
    parser.add_argument("--log-level", default="INFO", help="Log level")

    sub = parser.add_subparsers(dest="command", required=True)

    upload = sub.add_parser("upload", help="Upload a single file and print its URL")
    upload.add_argument("file", type=Path)
    upload.add_argument("--mime-type", help="Content type (default: from extension)")

    for name, help_text in (
        ("publish", "Publish one note"),
        ("publish-folder", "Publish every note in a folder"),
        ("publish-vault", "Publish every note in the vault"),
    ):
        command = sub.add_parser(name, help=help_text)
        if name == "publish":
            command.add_argument("note", help="Note path relative to the vault root")
        elif name == "publish-folder":
            command.add_argument("folder", help="Folder path relative to the vault root")
        command.add_argument("--dry-run", action="store_true", help="Do not write notes back")
        command.add_argument("--external", action="store_true", help="Also re-host external images")
    return parser


def _load_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.load(args.config) if args.config else Settings.load()
    updates: dict = {}
    if args.vault is not None:
        updates["vault"] = settings.vault.model_copy(update={"root": str(args.vault)})
    if getattr(args, "external", False):
        updates["upload"] = settings.upload.model_copy(update={"upload_external_images": True})
    return settings.model_copy(update=updates) if updates else settings


def _report_document(result: PublishResult) -> None:
    label = result.document_path or "<text>"
    logger.info("{path}: {summary}", path=label, summary=result.summary())
    for failure in result.failures:
        logger.warning("{path}: {target}: {reason}", path=label, target=failure.target, reason=failure.reason)


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "upload":
        if not args.file.is_file():
            logger.error("File not found: {path}", path=args.file)
            return EXIT_FAILURES
        uploader = create_uploader(settings)
        data = args.file.read_bytes()
        mime_type = args.mime_type or mime_type_for_name(args.file.name)
        url = await uploader.upload(data, args.file.name, mime_type)
        print(url)
        return EXIT_OK

    vault = create_vault(settings)
    if args.command == "publish" and not vault.exists(args.note):
        logger.error("Note not found: {path}", path=args.note)
        return EXIT_FAILURES
    publisher = create_publisher(settings, vault=vault)
    write = False if args.dry_run else None

    if args.command == "publish":
        result = await publisher.publish_document(args.note, write=write)
        _report_document(result)
        if args.dry_run:
            sys.stdout.write(result.text)
        return EXIT_FAILURES if result.error_count else EXIT_OK

    folder = args.folder if args.command == "publish-folder" else None
    corpus: CorpusResult = await publisher.publish_folder(folder, write=write)
    for result in corpus.documents:
        if result.found:
            _report_document(result)
    logger.info(
        "Done: {docs} notes updated, {success} uploaded, {errors} failed",
        docs=corpus.documents_written,
        success=corpus.success_count,
        errors=corpus.error_count,
    )
    return EXIT_FAILURES if corpus.error_count else EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=args.log_level)

    try:
        settings = _load_settings(args)
        return asyncio.run(_run(args, settings))
    except (ConfigurationError, FileNotFoundError, ValueError) as exc:
        logger.error("Configuration error: {error}", error=exc)
        return EXIT_CONFIG
    except R2UploaderError as exc:
        logger.error("{error}", error=exc.message)
        return EXIT_FAILURES


if __name__ == "__main__":
    sys.exit(main())
