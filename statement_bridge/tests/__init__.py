"""
Statement Bridge Tests

Test suite for the statement model and format codecs:
- MT940 customer statements
- ISO 20022 camt.053 statements
- Mapped CSV exports
- Conversion, comparison and the command line
"""
