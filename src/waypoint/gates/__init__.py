"""Gates — read-only, subscribable views over asynchronous state sources.

Each gate reports ``loading`` as a real status so the resolver never
mistakes "not yet known" for "known false".
"""
