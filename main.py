"""Entry point launcher - runs flowwatch.main as a module"""
import runpy

if __name__ == "__main__":
    runpy.run_module("flowwatch.main", run_name="__main__")
