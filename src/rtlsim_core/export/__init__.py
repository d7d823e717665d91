# src/rtlsim_core/export/__init__.py
"""
Exposes the netlist exporters and their importers.
"""
from .verilog import export_verilog, import_verilog
from .document import DOCUMENT_FORMAT, DOCUMENT_VERSION, dump_document, export_document, import_document
from .exceptions import NetlistFormatError

__all__ = [
    "export_verilog",
    "import_verilog",
    "DOCUMENT_FORMAT",
    "DOCUMENT_VERSION",
    "dump_document",
    "export_document",
    "import_document",
    "NetlistFormatError",
]
