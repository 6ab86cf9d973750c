"""External build executor gateway.

The executor runs builds out of process; the scheduler only starts jobs,
polls them and cancels them.
"""
