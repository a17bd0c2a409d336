"""Common test fixtures."""

import textwrap
from pathlib import Path

import pytest
from loguru import logger

from content_admin.config import ContentAdminConfig
from content_admin.schema.cache import set_schema_cache

BLOCKS_MODULE = '''\
from typing import Literal, Optional

from pydantic import BaseModel, Field


class HeroBlock(BaseModel):
    type: Literal["heroBlock"]
    heading: str
    image: Optional[str] = None


class RichText(BaseModel):
    type: Literal["richText"]
    body: str


class CallToAction(BaseModel):
    type: Literal["cta"]
    label: str
    href: str = Field(description="Link target")
'''

CONTENT_CONFIG = '''\
from typing import Annotated, Union

from site_content import define_collection, reference
from pydantic import BaseModel, Field

from blocks import CallToAction, HeroBlock, RichText

Block = Annotated[Union[HeroBlock, RichText, CallToAction], Field(discriminator="type")]


class Page(BaseModel):
    title: str
    draft: bool = False
    blocks: list[Block] = []


class Author(BaseModel):
    name: str
    email: str


collections = {
    "pages": define_collection(type="content", schema=Page),
    "authors": define_collection(type="data", schema=Author),
}
'''


def _write_module(path: Path, source: str) -> Path:
    """Write dedented module source, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(source), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep CONTENT_ADMIN_* variables from the host out of the tests."""
    import os

    for key in list(os.environ):
        if key.startswith("CONTENT_ADMIN_"):
            monkeypatch.delenv(key)


@pytest.fixture(autouse=True)
def reset_schema_cache():
    """Each test starts without a process-wide schema cache."""
    set_schema_cache(None)
    yield
    set_schema_cache(None)


@pytest.fixture
def project_root(tmp_path) -> Path:
    """A site project with two collections and a block union."""
    root = tmp_path / "site"
    _write_module(root / "src" / "content" / "blocks.py", BLOCKS_MODULE)
    _write_module(root / "src" / "content" / "config.py", CONTENT_CONFIG)
    (root / "src" / "content" / "pages").mkdir()
    (root / "src" / "content" / "authors").mkdir()
    return root


@pytest.fixture
def config(project_root) -> ContentAdminConfig:
    return ContentAdminConfig(project_root=project_root, env="test")


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def write_module():
    """Return a helper that writes dedented module source to a path."""
    return _write_module
