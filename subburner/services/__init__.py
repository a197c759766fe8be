"""
Service layer of the subtitle burner.

- `QueueManager` owns the queue, runs admission and dispatches one item at a time.
- `AdmissionController` combines the `ConflictResolver` and the
  `DiskSpaceEstimator` into a single go / no-go answer for a batch.
- `ProcessRunner` supervises one FFmpeg process and reports its progress,
  output lines and outcome.
- `SuccessLog` / `ErrorLog` write the persistent run reports.
"""
