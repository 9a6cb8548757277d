"""Configuration of script programs attached to request pipeline hooks."""