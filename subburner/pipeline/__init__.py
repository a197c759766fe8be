"""
Pipelines drive the queue for a specific host. `BatchBurnPipeline` is the
command-line host: it discovers inputs, queues them and waits for the run to end.
"""
