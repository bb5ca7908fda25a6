"""formrelay: form builder API with awork relay."""
