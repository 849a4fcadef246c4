"""
Club Placement application.

A FastAPI service that drives the interactive placement of an event's clubs
on a map: category queues, point-and-click placement, moving placed clubs,
and keeping map markers in step with the club directory.
"""
