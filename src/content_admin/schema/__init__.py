"""Schema engine for content-admin.

Compiles the host project's schema-definition module into JSON Schema form
definitions, with discriminated unions surfaced as block types. The module is
bundled with its local imports, loaded in isolation, walked, and cached.
"""

from content_admin.schema.errors import (
    SchemaEngineError,
    BundleError,
    SchemaSourceNotFoundError,
    ConfigShapeError,
    LoadError,
    SchemaConversionError,
)
from content_admin.schema.models import (
    CollectionDeclaration,
    CollectionSchema,
    DiscriminatedUnion,
    UnionOption,
)
from content_admin.schema.bundler import bundle_schema_module
from content_admin.schema.loader import load_collections, staged_collections
from content_admin.schema.walker import (
    NodeKind,
    find_discriminated_unions,
    format_label,
    walk_schema,
)
from content_admin.schema.enrichment import enrich_schema_with_block_types
from content_admin.schema.form_fields import schema_to_form_field, schema_to_form_fields
from content_admin.schema.compiler import SchemaCompiler
from content_admin.schema.watcher import SchemaWatcher
from content_admin.schema.cache import (
    CacheState,
    SchemaCache,
    clear_schema_cache,
    get_schema_cache,
    load_schemas,
    set_schema_cache,
    stop_watching_schema_config,
    watch_schema_config,
)

__all__ = [
    # Errors
    "SchemaEngineError",
    "BundleError",
    "SchemaSourceNotFoundError",
    "ConfigShapeError",
    "LoadError",
    "SchemaConversionError",
    # Models
    "CollectionDeclaration",
    "CollectionSchema",
    "DiscriminatedUnion",
    "UnionOption",
    # Pipeline
    "bundle_schema_module",
    "load_collections",
    "staged_collections",
    "NodeKind",
    "find_discriminated_unions",
    "format_label",
    "walk_schema",
    "SchemaCompiler",
    # Enrichment and forms
    "enrich_schema_with_block_types",
    "schema_to_form_field",
    "schema_to_form_fields",
    # Cache
    "CacheState",
    "SchemaCache",
    "SchemaWatcher",
    "clear_schema_cache",
    "get_schema_cache",
    "load_schemas",
    "set_schema_cache",
    "stop_watching_schema_config",
    "watch_schema_config",
]
