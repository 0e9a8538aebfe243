"""Router inventory spreadsheet importer.

Reads an inventory workbook, classifies its columns, validates the rows and
merges them into the routers / RVM units / SIM cards inventory.
"""

__version__ = "0.1.0"
