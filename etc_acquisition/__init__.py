"""
etc_acquisition -- asynchronous multi-account record acquisition.

The job tracker downloads each account's CSV extract through an injected
client and feeds it to the import pipeline, one account at a time, on a
background thread per job.  Job state lives in memory only.
"""
