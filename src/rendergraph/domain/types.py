"""Node types, operator variants, and outcome classifications.

String values match the identifiers stored in authored graph files.
"""

from __future__ import annotations

from enum import StrEnum


class NodeType(StrEnum):
    """The eight node types a graph can contain."""

    TEXT_INPUT = "textInput"
    IMAGE_INPUT = "imageInput"
    CONTROL_NET = "controlNet"
    RERENDERING = "rerendering"
    TOOL = "tool"
    ENGINE = "engine"
    GEAR = "gear"
    OUTPUT = "output"


class RerenderingType(StrEnum):
    """Generative re-render operators selected by ``rerenderingType``."""

    REIMAGINE = "reimagine"
    REFERENCE = "reference"
    RESCENE = "rescene"
    REANGLE = "reangle"
    REMIX = "remix"


class ToolType(StrEnum):
    """Post-processing tools selected by ``toolType``."""

    REMOVEBG = "removebg"
    UPSCALE = "upscale"
    INPAINT = "inpaint"
    OUTPAINT = "outpaint"


class ReferenceType(StrEnum):
    """What a ``reference`` re-render borrows from its reference image."""

    STYLE = "style"
    PRODUCT = "product"
    CHARACTER = "character"
    COMPOSITION = "composition"


class ImageRole(StrEnum):
    """Role of an image wired into a ``rescene`` re-render."""

    OBJECT = "object"
    SCENE = "scene"
    FUSE = "fuse"


class Reason(StrEnum):
    """Why a node evaluation ended the way it did."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    BLOCKED = "blocked"
    FAILED = "failed"
