"""
CQL adapters package.

This package provides the following components:

- column_info: Column metadata of result sets and prepared statements
- structure: Item shapes (sequence, mapping, object) and accessor tables
- type_conversion: Codecs converting values on the read and write paths
- type_mapping: Wire type resolution (no conversion)

Type conversion principles:
1. Database → Python: the driver decodes the wire format; CodecRegistry.coerce
   reshapes driver values into the requested host representation
2. Python → Database: TypeConverter normalizes NumPy/pandas values, then
   CodecRegistry.encode converts them for the parameter's wire type

The Column class and structure adapters do NOT perform conversions themselves,
they delegate to the CodecRegistry.
"""

# Export adapter classes and functions
from cqlbatch.adapters.column_info import *
from cqlbatch.adapters.structure import *
from cqlbatch.adapters.type_mapping import *
from cqlbatch.adapters.type_conversion import *
