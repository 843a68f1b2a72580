"""
Border classification for the mesh graph.

A vertex that shows up in only one triangle around a neighbour lies on
an open edge as seen from that neighbour.
"""

from collections import Counter

from .model import MeshGraph


def identify_border(graph: MeshGraph) -> None:
    """
    Overwrite every vertex border flag from the current adjacency.

    Walks each vertex window and counts how often every corner id occurs
    across those triangles. A count of exactly one marks that id as
    border, anything higher marks it interior. Later vertices overwrite
    the verdicts of earlier ones, so the result depends on vertex order.

    Requires a freshly rebuilt reference table.
    """
    vertices = graph.vertices
    for v in vertices:
        counts = Counter()
        for ref in graph.window(v):
            counts.update(graph.triangles[ref.triangle].vertices)
        for vertex_id, count in counts.items():
            vertices[vertex_id].is_border = count == 1


def tally_border_factors(graph: MeshGraph) -> None:
    """Store the number of border corners on every live triangle."""
    vertices = graph.vertices
    for t in graph.triangles:
        if t.deleted:
            continue
        t.border_factor = sum(1 for vi in t.vertices if vertices[vi].is_border)
