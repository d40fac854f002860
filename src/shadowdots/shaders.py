VS = """
#version 330
in vec2 in_vert;
out vec2 uv;
void main(){ gl_Position = vec4(in_vert,0.0,1.0); uv = (in_vert + 1.0)*0.5; }
"""

# Canvas rows are stored top-down (numpy order); GL samples bottom-up.
FS_SHOW_CANVAS = """
#version 330
in vec2 uv; out vec4 fragColor;
uniform sampler2D canvas;
uniform int mirror;
void main(){
    float u = (mirror == 1) ? 1.0 - uv.x : uv.x;
    fragColor = vec4(texture(canvas, vec2(u, 1.0 - uv.y)).rgb, 1.0);
}
"""

# Glyph quads in NDC; the atlas stores coverage in the red channel.
VS_DEBUGOVERLAY = """
#version 330
in vec2 in_vert;
in vec2 in_uv;
out vec2 uv;
void main(){ gl_Position = vec4(in_vert, 0.0, 1.0); uv = in_uv; }
"""

FS_DEBUGOVERLAY = """
#version 330
in vec2 uv; out vec4 fragColor;
uniform sampler2D fontTexture;
uniform vec4 textColor;
void main(){
    float coverage = texture(fontTexture, uv).r;
    fragColor = vec4(textColor.rgb, textColor.a * coverage);
}
"""
