"""gRPC transport layer for the application.

This package hosts:
- The `items.v1` protocol: the `.proto` source (in `protos/`) and the
  grpcio-tools stubs compiled from it into `generated/` by `codegen`.
- Server bootstrap and the middleware pipeline (in `interceptors/`).
- Thin service adapters that map gRPC requests to application services.
"""
