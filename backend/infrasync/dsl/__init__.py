from infrasync.dsl.hcl_parser import TopLevelBlock, parse_hcl, strip_comments, top_level_blocks

__all__ = ["TopLevelBlock", "parse_hcl", "strip_comments", "top_level_blocks"]
