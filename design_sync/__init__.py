"""
design-sync — 設計 ⇄ 程式碼轉換引擎

畫面元素 → Figma scene nodes、Figma 節點 → 元件原始碼，以及產出程式碼的版本紀錄。
"""

__version__ = "0.1.0"

from .colors import ColorParser, ColorValue
from .scene import (
    BoundingBox,
    ContainerNode,
    Paint,
    SceneNode,
    Shadow,
    ShapeNode,
    StyleSnapshot,
    TextNode,
    match_node,
    node_to_dict,
)
from .naming_engine import NamingConfig, NamingEngine, preview_naming_tree
from .dom_extractor import (
    CapturedElement,
    ExtractionConfig,
    SceneNodeExtractor,
    extract_dom_tree,
    extract_dom_tree_sync,
)
from .figma_reader import DesignDocument, FigmaAPIClient, load_document, node_from_dict
from .generator import (
    CodeGenerator,
    CustomCode,
    GeneratedArtifact,
    GenerationOptions,
    NoGenerationTarget,
    write_artifacts,
)
from .analysis import ScoringPolicy
from .optimizer import RuleBasedOptimizer
from .version_control import VersionNotFound, VersionStore
from .transport import JsonFallbackTransport, PayloadFileTransport, PluginBridgeTransport, SendResult
from .config import load_config, validate_config

__all__ = [
    "__version__",
    "ColorParser",
    "ColorValue",
    "BoundingBox",
    "ContainerNode",
    "Paint",
    "SceneNode",
    "Shadow",
    "ShapeNode",
    "StyleSnapshot",
    "TextNode",
    "match_node",
    "node_to_dict",
    "NamingConfig",
    "NamingEngine",
    "preview_naming_tree",
    "CapturedElement",
    "ExtractionConfig",
    "SceneNodeExtractor",
    "extract_dom_tree",
    "extract_dom_tree_sync",
    "DesignDocument",
    "FigmaAPIClient",
    "load_document",
    "node_from_dict",
    "CodeGenerator",
    "CustomCode",
    "GeneratedArtifact",
    "GenerationOptions",
    "NoGenerationTarget",
    "write_artifacts",
    "ScoringPolicy",
    "RuleBasedOptimizer",
    "VersionNotFound",
    "VersionStore",
    "JsonFallbackTransport",
    "PayloadFileTransport",
    "PluginBridgeTransport",
    "SendResult",
    "load_config",
    "validate_config",
]
