"""Command-line interface (`tvm-deploy`)."""
