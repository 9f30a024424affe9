"""Parsers for DPW Manager, Tasking Manager and release-feed responses.

Each parser turns raw response text into typed records using the scanners
in dpwtool.data.json_scan. Parsers never make network calls and never
raise: failures come back as ParseError or BusinessRuleError outcomes.
"""
