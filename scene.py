#!/usr/bin/env python3
# pip install numpy trimesh
# Scene assembly for the mimosa: branch tubes, leaf/flower spheres and the
# vase, merged into one coloured mesh and exported with trimesh.
# Run: python scene.py [out.obj]
import os
import sys
import numpy as np
import trimesh

from lsystem import require

# ===== Colours =====
SKY_COLOR    = "#87CEEB"
BRANCH_COLOR = "#5D4037"
LEAF_COLOR   = "#8BC34A"
FLOWER_COLOR = "#FFEB3B"
VASE_COLOR   = "#8B4513"

# ===== Branches =====
BRANCH_R        = 0.02
BRANCH_SECTIONS = 6

# ===== Spheres (leaves at tips, flowers at sampled points) =====
LEAF_R        = 0.08
FLOWER_R      = 0.1
SPHERE_SUBDIV = 1

# ===== Vase (tapered cylinder under the trunk) =====
VASE_TOP_R     = 1.0
VASE_BOTTOM_R  = 1.2
VASE_HEIGHT    = 2.0
VASE_CENTER_Y  = -1.0
VASE_SECTIONS  = 32

# ===============================================================

def rgba(hex_color):
    h = hex_color.lstrip("#")
    return np.array([int(h[i:i+2], 16) for i in (0, 2, 4)] + [255], dtype=np.uint8)

def _colored(mesh, hex_color):
    mesh.visual.face_colors = rgba(hex_color)
    return mesh

def _ring_faces(base, sections):
    # two triangles per quad between ring `base` and ring `base + sections`
    i = np.arange(sections)
    j = (i + 1) % sections
    i1 = base + i; i2 = base + j
    i3 = base + sections + i; i4 = base + sections + j
    return np.concatenate([np.stack([i1, i3, i2], axis=-1),
                           np.stack([i2, i3, i4], axis=-1)], axis=-2)

def branch_tubes(segments, radius=BRANCH_R, sections=BRANCH_SECTIONS):
    """One open cylinder per (start, end) segment."""
    require(radius > 0, "branch radius must be > 0")
    require(sections >= 3, "branch sections must be >= 3")
    if not segments:
        return trimesh.Trimesh()

    seg = np.asarray(segments, dtype=float)  # (n, 2, 3)
    starts, ends = seg[:, 0], seg[:, 1]
    n = len(seg)

    direction = ends - starts
    direction /= np.clip(np.linalg.norm(direction, axis=1, keepdims=True), 1e-9, None)
    # any reference vector not parallel to direction
    up = np.where(np.abs(direction[:, 1:2]) < 0.9, [0.0, 1.0, 0.0], [1.0, 0.0, 0.0])
    right = np.cross(direction, up)
    right /= np.linalg.norm(right, axis=1, keepdims=True)
    forward = np.cross(right, direction)

    a = 2.0 * np.pi * np.arange(sections) / sections
    ring = radius * (np.cos(a)[None, :, None] * right[:, None, :]
                     + np.sin(a)[None, :, None] * forward[:, None, :])  # (n, s, 3)
    vertices = np.concatenate([starts[:, None] + ring, ends[:, None] + ring], axis=1).reshape(-1, 3)

    base = (np.arange(n) * 2 * sections)[:, None, None]
    faces = (_ring_faces(0, sections)[None] + base).reshape(-1, 3)
    return _colored(trimesh.Trimesh(vertices=vertices, faces=faces, process=False), BRANCH_COLOR)

def markers(points, radius, hex_color, subdivisions=SPHERE_SUBDIV):
    """An icosphere at every point, as one mesh."""
    require(radius > 0, "marker radius must be > 0")
    if len(points) == 0:
        return trimesh.Trimesh()
    sph = trimesh.creation.icosphere(subdivisions=subdivisions, radius=radius)
    pts = np.asarray(points, dtype=float)
    nv = len(sph.vertices)
    vertices = (sph.vertices[None] + pts[:, None]).reshape(-1, 3)
    faces = (sph.faces[None] + (np.arange(len(pts)) * nv)[:, None, None]).reshape(-1, 3)
    return _colored(trimesh.Trimesh(vertices=vertices, faces=faces, process=False), hex_color)

def vase(top_r=VASE_TOP_R, bottom_r=VASE_BOTTOM_R, height=VASE_HEIGHT,
         center_y=VASE_CENTER_Y, sections=VASE_SECTIONS):
    """Closed frustum standing on the Y axis."""
    require(top_r > 0 and bottom_r > 0 and height > 0, "vase dimensions must be > 0")
    require(sections >= 3, "vase sections must be >= 3")
    a = 2.0 * np.pi * np.arange(sections) / sections
    y0 = center_y - height / 2
    y1 = center_y + height / 2
    bottom = np.column_stack([bottom_r * np.cos(a), np.full(sections, y0), bottom_r * np.sin(a)])
    top = np.column_stack([top_r * np.cos(a), np.full(sections, y1), top_r * np.sin(a)])
    centers = np.array([[0.0, y0, 0.0], [0.0, y1, 0.0]])
    vertices = np.vstack([bottom, top, centers])

    i = np.arange(sections)
    j = (i + 1) % sections
    cb, ct = 2 * sections, 2 * sections + 1
    bottom_cap = np.stack([np.full(sections, cb), j, i], axis=-1)
    top_cap = np.stack([np.full(sections, ct), sections + i, sections + j], axis=-1)
    faces = np.vstack([_ring_faces(0, sections), bottom_cap, top_cap])
    return _colored(trimesh.Trimesh(vertices=vertices, faces=faces, process=False), VASE_COLOR)

def build_scene(tree, with_vase=True, branch_r=BRANCH_R, leaf_r=LEAF_R, flower_r=FLOWER_R):
    """Merge a generated tree's geometry into a single coloured mesh."""
    meshes = [
        branch_tubes(tree.segments, radius=branch_r),
        markers(tree.leaves, leaf_r, LEAF_COLOR),
        markers(tree.flowers, flower_r, FLOWER_COLOR),
    ]
    if with_vase:
        meshes.append(vase())
    meshes = [m for m in meshes if len(m.faces)]
    if not meshes:
        return trimesh.Trimesh()
    return trimesh.util.concatenate(meshes)

def export_scene(mesh, path):
    os.makedirs(os.path.dirname(os.path.abspath(path)) or ".", exist_ok=True)
    mesh.export(path)
    return path

def main(argv=None):
    from mimosa import MimosaTree, default_options

    argv = sys.argv[1:] if argv is None else argv
    out = argv[0] if argv else "mimosa.obj"

    print("Growing mimosa…")
    tree = MimosaTree(default_options(seed=42))
    tree.generate()
    print(f"{len(tree.segments)} branches, {len(tree.leaves)} leaves, {len(tree.flowers)} flowers")

    print("Meshing scene…")
    mesh = build_scene(tree)
    export_scene(mesh, out)
    print(f"Done: {out}")

if __name__ == "__main__":
    main()
