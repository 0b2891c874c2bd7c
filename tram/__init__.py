from tram.tram_datatypes import NIL, Kind, LocalStack, Value
from tram.tram_interpreter import Evaluator
from tram.tram_parser import parse
from tram.tram_runtime import ExecutionResult, ScriptRunner

__all__ = [
    "NIL", "Kind", "LocalStack", "Value",
    "Evaluator", "parse", "ExecutionResult", "ScriptRunner",
]
